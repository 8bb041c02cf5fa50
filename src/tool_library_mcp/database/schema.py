"""
SQLAlchemy database schema for the Tool Library MCP Server.

These tables are the persistent storage behind the server's resources
(read-only views such as the category tree) and tools (checkout, check-in,
inventory edits).

Key points:
1. Categories form a self-referential tree; acyclicity is enforced by
   CategoryRepository before any commit.
2. Deleting a tool cascades to its checkouts, files and damage reports.
3. A File row belongs to exactly one owner column, chosen by entity type.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

# Base class for all SQLAlchemy models
Base = declarative_base()


class UserRoleEnum(str, enum.Enum):
    """Staff roles."""

    ADMIN = "ADMIN"
    VOLUNTEER = "VOLUNTEER"


class ConditionStatusEnum(str, enum.Enum):
    """Physical state of a tool."""

    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    RETIRED = "RETIRED"


class CheckoutStatusEnum(str, enum.Enum):
    """Loan status; only CHECKED_OUT -> RETURNED is allowed."""

    CHECKED_OUT = "CHECKED_OUT"
    RETURNED = "RETURNED"


class EntityTypeEnum(str, enum.Enum):
    """Owner kinds a File row can be attached to."""

    TOOL = "TOOL"
    PATRON = "PATRON"
    VOLUNTEER = "VOLUNTEER"
    DAMAGE_REPORT = "DAMAGE_REPORT"


class User(Base):
    """
    Users table - library staff (admins and volunteers).

    MCP Usage:
    - Tools: login creates a session for a user; every write tool records
      which user performed it
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(100), nullable=False, unique=True)
    password_hash = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(Enum(UserRoleEnum), nullable=False, default=UserRoleEnum.VOLUNTEER)
    email = Column(String(255), nullable=False, default="")
    phone = Column(String(30), nullable=False, default="")
    mailing_street = Column(String(200), nullable=False, default="")
    mailing_city = Column(String(100), nullable=False, default="")
    mailing_state = Column(String(50), nullable=False, default="")
    mailing_zipcode = Column(String(10), nullable=False, default="")
    training_date = Column(Date, nullable=True)
    trained_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    trained_by = relationship("User", remote_side=[id])
    logins = relationship("LoginHistory", back_populates="user", cascade="all, delete-orphan")
    files = relationship("File", back_populates="volunteer", foreign_keys="File.volunteer_id")

    __table_args__ = (Index("idx_user_role", "role"),)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoleEnum.ADMIN


class LoginHistory(Base):
    """Login history - one row per successful login."""

    __tablename__ = "login_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    login_at = Column(DateTime, nullable=False, default=func.now())
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    user = relationship("User", back_populates="logins")


class Category(Base):
    """
    Categories table - self-referential tool category tree.

    MCP Usage:
    - Resource: toollibrary://categories/tree
    - Tools: create_category, update_category, delete_category (admin only)
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship("Category", back_populates="parent")
    tools = relationship("Tool", back_populates="category")

    # NULL parents are not covered by the unique constraint; the repository
    # checks top-level names itself.
    __table_args__ = (
        Index("idx_category_parent", "parent_id"),
        UniqueConstraint("name", "parent_id", name="unique_category_name_per_parent"),
        CheckConstraint("parent_id IS NULL OR parent_id != id", name="check_not_own_parent"),
    )


class Tool(Base):
    """
    Tools table - the lendable inventory.

    MCP Usage:
    - Resource: toollibrary://tools/list, toollibrary://tools/{tool_id}
    - Tools: checkout_tools / checkin_tool change availability;
      create_tool / update_tool / delete_tool manage inventory
    """

    __tablename__ = "tools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    donor = Column(String(200), nullable=True)
    condition_status = Column(
        Enum(ConditionStatusEnum), nullable=False, default=ConditionStatusEnum.GOOD
    )

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="tools")
    checkouts = relationship(
        "Checkout", back_populates="tool", cascade="all, delete-orphan"
    )
    files = relationship(
        "File",
        back_populates="tool",
        cascade="all, delete-orphan",
        foreign_keys="File.tool_id",
        order_by="File.id",
    )
    damage_reports = relationship(
        "DamageReport",
        back_populates="tool",
        cascade="all, delete-orphan",
        order_by="DamageReport.reported_at.desc()",
    )

    __table_args__ = (
        Index("idx_tool_category", "category_id"),
        CheckConstraint("quantity >= 1", name="check_quantity_positive"),
    )

    @validates("quantity")
    def validate_quantity(self, key, value):  # noqa: ARG002
        """A tool record always represents at least one unit."""
        if value is not None and value < 1:
            raise ValueError("Quantity must be at least 1")
        return value


class Patron(Base):
    """
    Patrons table - community members who borrow tools.

    MCP Usage:
    - Tools: register_patron, update_patron, search_patrons, get_patron
    """

    __tablename__ = "patrons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    mailing_street = Column(String(200), nullable=False)
    mailing_city = Column(String(100), nullable=False)
    mailing_state = Column(String(50), nullable=False)
    mailing_zipcode = Column(String(10), nullable=False)
    overdue_count = Column(Integer, nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    checkouts = relationship("Checkout", back_populates="patron", order_by="Checkout.checkout_date.desc()")
    files = relationship("File", back_populates="patron", foreign_keys="File.patron_id")

    __table_args__ = (
        Index("idx_patron_name", "last_name", "first_name"),
        CheckConstraint(
            "email IS NOT NULL OR phone IS NOT NULL", name="check_patron_has_contact"
        ),
        CheckConstraint("overdue_count >= 0", name="check_overdue_count_non_negative"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Checkout(Base):
    """
    Checkouts table - one row per loaned tool unit.

    MCP Usage:
    - Tools: checkout_tools creates rows, checkin_tool closes them;
      list_active_checkouts and list_overdue_checkouts read them
    """

    __tablename__ = "checkouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False)
    patron_id = Column(Integer, ForeignKey("patrons.id"), nullable=False)
    volunteer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    checkout_date = Column(DateTime, nullable=False, default=func.now())
    due_date = Column(DateTime, nullable=False)
    checkout_period = Column(Integer, nullable=False)
    checkin_date = Column(DateTime, nullable=True)
    checkin_volunteer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    status = Column(
        Enum(CheckoutStatusEnum), nullable=False, default=CheckoutStatusEnum.CHECKED_OUT
    )
    was_overdue = Column(Boolean, nullable=False, default=False)

    tool = relationship("Tool", back_populates="checkouts")
    patron = relationship("Patron", back_populates="checkouts")
    volunteer = relationship("User", foreign_keys=[volunteer_id])
    checkin_volunteer = relationship("User", foreign_keys=[checkin_volunteer_id])

    __table_args__ = (
        Index("idx_checkout_tool_status", "tool_id", "status"),
        Index("idx_checkout_patron", "patron_id"),
        Index("idx_checkout_due_date", "due_date"),
        CheckConstraint("checkout_period >= 0", name="check_checkout_period_non_negative"),
        CheckConstraint(
            "status != 'RETURNED' OR checkin_date IS NOT NULL",
            name="check_returned_has_checkin_date",
        ),
    )


class DamageReport(Base):
    """Damage reports filed against a tool."""

    __tablename__ = "damage_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=False)
    reported_at = Column(DateTime, nullable=False, default=func.now())

    tool = relationship("Tool", back_populates="damage_reports")
    reporter = relationship("User")
    files = relationship(
        "File",
        back_populates="damage_report",
        cascade="all, delete-orphan",
        foreign_keys="File.damage_report_id",
    )


class File(Base):
    """
    Files table - metadata for uploaded photos and documents.

    Exactly one of the owner columns is set, matching entity_type.
    """

    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(Enum(EntityTypeEnum), nullable=False)
    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=True)
    patron_id = Column(Integer, ForeignKey("patrons.id", ondelete="CASCADE"), nullable=True)
    volunteer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    damage_report_id = Column(
        Integer, ForeignKey("damage_reports.id", ondelete="CASCADE"), nullable=True
    )
    file_path = Column(String(1000), nullable=False)
    file_name = Column(String(500), nullable=False)
    file_type = Column(String(200), nullable=False, default="application/octet-stream")
    label = Column(String(200), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=func.now())

    tool = relationship("Tool", back_populates="files", foreign_keys=[tool_id])
    patron = relationship("Patron", back_populates="files", foreign_keys=[patron_id])
    volunteer = relationship("User", back_populates="files", foreign_keys=[volunteer_id])
    damage_report = relationship(
        "DamageReport", back_populates="files", foreign_keys=[damage_report_id]
    )
    uploader = relationship("User", foreign_keys=[uploaded_by])

    __table_args__ = (
        Index("idx_file_tool", "tool_id"),
        Index("idx_file_patron", "patron_id"),
        CheckConstraint(
            "(CASE WHEN tool_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN patron_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN volunteer_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN damage_report_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="check_file_single_owner",
        ),
    )
