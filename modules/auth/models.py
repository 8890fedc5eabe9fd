from typing import Optional
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    Back-office operator account, stored in the shape FastAPI Users expects.

    full_name is what audit trails (invoice history) record as the actor.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=320)
    hashed_password: str = Field(max_length=1024)
    is_active: bool = Field(default=True)
    is_superuser: bool = Field(default=False)
    is_verified: bool = Field(default=False)
    full_name: Optional[str] = Field(default=None, max_length=255)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
