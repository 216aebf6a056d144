from typing import Optional
from datetime import datetime
from enum import Enum
from pydantic import EmailStr, Field

from app.models.base import CamelModel, DocumentModel


class UserRole(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class UserBase(CamelModel):
    email: EmailStr
    name: str
    role: UserRole = UserRole.STUDENT
    is_active: bool = True
    avatar: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None


class UserInDB(UserBase, DocumentModel):
    """User document. Accounts are owned by the auth service; read only here."""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(UserBase):
    """User API model."""
    key: str = Field(alias="_key")
    created_at: Optional[datetime] = None
