"""
Staff user repository: accounts, password checks and login history.

Passwords are stored as bcrypt hashes and never leave this module.
"""

import logging
from datetime import date

import bcrypt
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select

from ..models.user import User as UserModel
from ..models.user import UserRole
from .repository import BaseRepository, DuplicateError, ValidationError
from .schema import LoginHistory as LoginHistoryDB
from .schema import User as UserDB
from .schema import UserRoleEnum
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


class UserCreateSchema(BaseModel):
    """Schema for creating a staff account."""

    user_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.ADMIN
    email: str = ""
    phone: str = ""
    mailing_street: str = ""
    mailing_city: str = ""
    mailing_state: str = ""
    mailing_zipcode: str = ""
    training_date: date | None = Field(default_factory=date.today)
    trained_by_id: int | None = None

    @field_validator("user_name", "name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def upper_role(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or UserRole.ADMIN
        return v


class UserRepository(BaseRepository[UserDB, UserModel]):
    """Repository for staff accounts."""

    @property
    def model_class(self):
        return UserDB

    @property
    def response_schema(self):
        return UserModel

    def get_by_user_name(self, user_name: str) -> UserDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(UserDB.user_name == user_name.strip())
            ).scalar_one_or_none(),
            "Failed to get user by user name",
        )

    def create(self, data: UserCreateSchema) -> UserModel:
        """
        Create a staff account.

        Raises:
            DuplicateError: If the user name is taken
        """
        if self.get_by_user_name(data.user_name) is not None:
            raise DuplicateError(f'Username "{data.user_name}" already exists', field="user_name")

        fields = data.model_dump(exclude={"password", "role"})
        db_user = UserDB(
            **{k: v.strip() if isinstance(v, str) else v for k, v in fields.items()},
            password_hash=hash_password(data.password),
            role=UserRoleEnum(data.role),
            active=True,
        )
        db_user = self._commit_new(db_user, "create user")
        logger.info("Created %s account %r (id %s)", db_user.role.value, db_user.user_name, db_user.id)
        return self._to_response_model(db_user)

    def authenticate(self, user_name: str, password: str) -> UserModel | None:
        """
        Check credentials.

        Returns the user, or None when the name is unknown, the password is
        wrong or too short, or the account is inactive.

        Raises:
            ValidationError: If either credential is missing
        """
        if not user_name or not user_name.strip():
            raise ValidationError("User name is required", field="user_name")
        if not password:
            raise ValidationError("Password is required", field="password")
        if len(password) < MIN_PASSWORD_LENGTH:
            return None

        db_user = self.get_by_user_name(user_name)
        if db_user is None or not verify_password(password, db_user.password_hash):
            return None
        if not db_user.active:
            logger.info("Rejected login for inactive user %r", db_user.user_name)
            return None
        return self._to_response_model(db_user)

    def get_active(self, user_id: int) -> UserModel | None:
        """The user if it exists and is active."""
        db_user = self._get_db_obj(user_id)
        if db_user is None or not db_user.active:
            return None
        return self._to_response_model(db_user)

    def set_active(self, user_id: int, active: bool) -> UserModel:
        db_user = self._require_db_obj(user_id)
        db_user.active = active
        self._commit_changes(db_user, "update user")
        return self._to_response_model(db_user)

    def record_login(
        self, user_id: int, ip_address: str | None = None, user_agent: str | None = None
    ) -> None:
        self.session.add(
            LoginHistoryDB(user_id=user_id, ip_address=ip_address, user_agent=user_agent)
        )
        safe_commit(self.session, "record login")
