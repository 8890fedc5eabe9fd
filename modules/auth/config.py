from fastapi_users import FastAPIUsers
from fastapi_users.authentication import (
    AuthenticationBackend,
    CookieTransport,
    JWTStrategy,
)

from config import SECRET_KEY
from modules.auth.models import User
from modules.auth.manager import get_user_manager

SESSION_LIFETIME = 86400  # 24h
AUTH_COOKIE = "mikrocrm_auth"


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=SECRET_KEY, lifetime_seconds=SESSION_LIFETIME)


cookie_transport = CookieTransport(
    cookie_name=AUTH_COOKIE,
    cookie_max_age=SESSION_LIFETIME,
    cookie_httponly=True,
    cookie_secure=False,  # True behind HTTPS
)

auth_backend = AuthenticationBackend(
    name="cookie",
    transport=cookie_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, int](
    get_user_manager,
    [auth_backend],
)

current_active_user = fastapi_users.current_user(active=True)
