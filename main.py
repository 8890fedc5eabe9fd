from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Depends, Response, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

import config
from utils.logging import logger
from database import init_db, async_session_maker
from context import AppContext

from modules.auth.models import User
from modules.auth.config import fastapi_users, auth_backend, current_active_user, AUTH_COOKIE
from modules.auth.schemas import UserRead, UserCreate, UserUpdate
from modules.auth.dependencies import get_current_admin_user
from modules.auth.manager import get_user_db, get_user_manager
from modules.auth.router import router as users_custom_router
from modules.cache.store import CacheIOError
from modules.routeros.exceptions import RouterOSError, InvalidCommand, InvalidResource

from modules.servers.router import router as servers_router
from modules.customers.router import router as customers_router
from modules.sync.router import router as sync_router
from modules.monitor.router import router as monitor_router
from modules.billing.router import router as billing_router
from modules.registrations.router import router as registrations_router
from modules.profiles.router import router as profiles_router


# --- LIFESPAN EVENT HANDLER ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    context = AppContext.create(session_maker=async_session_maker)
    app.state.context = context
    if config.MONITOR_ENABLED:
        context.monitor.start()
    else:
        logger.info("Network monitor disabled")
    yield
    await context.monitor.stop()


app = FastAPI(title="MikroCRM", lifespan=lifespan)


# --- ERROR MAPPING ---
@app.exception_handler(InvalidResource)
@app.exception_handler(InvalidCommand)
async def caller_error_handler(request: Request, exc: RouterOSError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RouterOSError)
async def routeros_error_handler(request: Request, exc: RouterOSError):
    logger.error(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(CacheIOError)
async def cache_error_handler(request: Request, exc: CacheIOError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": f"Database error: {type(exc).__name__}"})


async def has_users() -> bool:
    async with async_session_maker() as session:
        result = await session.execute(select(func.count(User.id)))
        return result.scalar() > 0


# --- SETUP (first admin) ---
class SetupAdminCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None


@app.get("/api/setup/status")
async def setup_status():
    return {"needs_setup": not await has_users()}


@app.post("/api/setup/create-admin")
async def create_initial_admin(data: SetupAdminCreate):
    """Create the initial admin user - only works when no users exist"""
    if await has_users():
        raise HTTPException(status_code=400, detail="A user already exists. Use login.")

    async with async_session_maker() as session:
        async for user_db in get_user_db(session):
            async for user_manager in get_user_manager(user_db):
                user_data = UserCreate(
                    email=data.email,
                    password=data.password,
                    full_name=data.full_name,
                    is_superuser=True,
                    is_verified=True,
                )
                try:
                    user = await user_manager.create(user_data)
                except Exception as e:
                    raise HTTPException(status_code=400, detail=str(e))
                return {"detail": "Administrator created", "email": user.email}


# --- AUTH ROUTES ---
app.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/auth",
    tags=["auth"],
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(get_current_admin_user)],
)
app.include_router(
    users_custom_router,
    prefix="/api/users",
    tags=["users"],
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(get_current_admin_user)],
)


@app.post("/auth/logout")
async def logout(response: Response, user: User = Depends(current_active_user)):
    """Logout endpoint - clears the auth cookie"""
    response.delete_cookie(AUTH_COOKIE)
    return {"detail": "Logged out"}


# --- APP ROUTES ---
app.include_router(servers_router)
app.include_router(customers_router)
app.include_router(sync_router)
app.include_router(monitor_router)
app.include_router(billing_router)
app.include_router(registrations_router)
app.include_router(profiles_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# --- ENTRY POINT ---
if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT, reload=False)
