"""
Patron model for the Tool Library MCP Server.

Patrons are community members who borrow tools. They are not staff: they
never log in. Registration requires at least one way to contact the patron
and a complete mailing address.

Patron data is only reachable through the authenticated patron tools.
"""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .checkout import CheckoutStatus, CheckoutWithDetails
from .file import FileRecord

PHONE_PATTERN = re.compile(r"^[\d\-()+.]{10,}$")


class PatronFields(BaseModel):
    """Editable patron attributes with registration rules."""

    first_name: str = Field(
        ...,
        description="Given name",
        min_length=2,
        max_length=100,
        examples=["Alice", "Bob"],
    )

    last_name: str = Field(
        ...,
        description="Family name",
        min_length=2,
        max_length=100,
        examples=["Builder", "Carpenter"],
    )

    email: EmailStr | None = Field(
        None,
        description="Email address; email or phone is required",
        examples=["alice@email.com"],
    )

    phone: str | None = Field(
        None,
        description="Phone number; email or phone is required",
        examples=["555-555-1001", "(217) 555-1002"],
    )

    mailing_street: str = Field(..., min_length=1, max_length=200)
    mailing_city: str = Field(..., min_length=1, max_length=100)
    mailing_state: str = Field(..., min_length=1, max_length=50)
    mailing_zipcode: str = Field(
        ...,
        description="US zip code",
        pattern=r"^\d{5}(-\d{4})?$",
        examples=["62704", "62704-1234"],
    )

    @field_validator("email", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat blank contact fields as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Accept common phone formats with at least ten characters."""
        if v is None:
            return v
        if not PHONE_PATTERN.match(re.sub(r"\s", "", v)):
            raise ValueError("Please enter a valid phone number")
        return v

    @model_validator(mode="after")
    def require_contact(self):
        """At least one contact method is required."""
        if self.email is None and self.phone is None:
            raise ValueError("Either email or phone number is required")
        return self

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")


class Patron(BaseModel):
    """A registered patron as stored."""

    id: int
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    mailing_street: str
    mailing_city: str
    mailing_state: str
    mailing_zipcode: str
    overdue_count: int = Field(0, ge=0, description="Late returns so far")
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatronDetail(Patron):
    """Patron with loan history (newest first) and attachments."""

    checkouts: list[CheckoutWithDetails] = Field(default_factory=list)
    files: list[FileRecord] = Field(default_factory=list)

    @property
    def active_checkouts(self) -> list[CheckoutWithDetails]:
        return [c for c in self.checkouts if c.status == CheckoutStatus.CHECKED_OUT]
