from typing import Optional
from fastapi import Depends, Request
from fastapi_users import BaseUserManager, IntegerIDMixin
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from config import SECRET_KEY
from database import get_session
from utils.logging import logger
from modules.auth.models import User


async def get_user_db(session: AsyncSession = Depends(get_session)):
    yield SQLAlchemyUserDatabase(session, User)


class UserManager(IntegerIDMixin, BaseUserManager[User, int]):
    reset_password_token_secret = SECRET_KEY
    verification_token_secret = SECRET_KEY

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info(f"Operator {user.display_name} <{user.email}> registered")

    async def on_after_login(self, user: User, request: Optional[Request] = None, response=None):
        logger.info(f"Operator {user.email} logged in")


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db)
