"""Staff user model. Password hashes never leave the database layer."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    """Staff roles; admins manage categories and users."""

    ADMIN = "ADMIN"
    VOLUNTEER = "VOLUNTEER"


class User(BaseModel):
    """A staff member."""

    id: int
    user_name: str
    name: str
    role: UserRole
    email: str = ""
    phone: str = ""
    training_date: date | None = None
    active: bool = True

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
