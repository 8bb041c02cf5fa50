"""
Checkout models for the Tool Library MCP Server.

A checkout is one loaned unit of one tool. It is created by the
checkout_tools tool and closed exactly once by checkin_tool.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CheckoutStatus(str, Enum):
    """Status of a checkout; RETURNED is terminal."""

    CHECKED_OUT = "CHECKED_OUT"
    RETURNED = "RETURNED"


class Checkout(BaseModel):
    """A loan of one tool unit to one patron."""

    id: int
    tool_id: int
    patron_id: int
    volunteer_id: int
    checkout_date: datetime
    due_date: datetime
    checkout_period: int = Field(..., ge=0, description="Loan length in days")
    checkin_date: datetime | None = None
    checkin_volunteer_id: int | None = None
    status: CheckoutStatus = CheckoutStatus.CHECKED_OUT
    was_overdue: bool = False

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Whether an open loan is past its due date."""
        if self.status == CheckoutStatus.RETURNED:
            return False
        return (now or datetime.now()) > self.due_date


class CheckoutWithDetails(Checkout):
    """Checkout with the names callers usually display next to it."""

    tool_name: str | None = None
    patron_name: str | None = None


class CheckinResult(BaseModel):
    """Outcome of a check-in."""

    checkout: Checkout
    tool_name: str
    returned_late: bool = Field(..., description="This check-in happened after the due date")
    patron_overdue_count: int
