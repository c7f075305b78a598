"""Policy Ingest - SQLAlchemy ORM models.

Database tables, one per entity kind:
1. agents
2. users
3. accounts
4. lines_of_business
5. carriers
6. policies

Every table has a surrogate integer primary key and a UNIQUE natural key
column. Upserts match on the natural key; the surrogate id is what
policies reference.
"""

from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class TimestampMixin:
    """created_at / updated_at columns shared by every entity table."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class Agent(TimestampMixin, Base):
    """Agent roster entry. Never linked to a policy."""

    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)


class User(TimestampMixin, Base):
    """Policy holder, keyed by email."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    zip: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    gender: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    user_type: Mapped[str] = mapped_column(String(64), nullable=False, default="Customer")


class Account(TimestampMixin, Base):
    """User account, keyed by account name."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)


class LineOfBusiness(TimestampMixin, Base):
    """Policy category (line of business), keyed by category name."""

    __tablename__ = "lines_of_business"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)


class Carrier(TimestampMixin, Base):
    """Insurance carrier, keyed by company name."""

    __tablename__ = "carriers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)


class Policy(TimestampMixin, Base):
    """Policy record, keyed by policy number.

    user_id is required. The other references are optional and stored as
    NULL when the row left them blank or they did not resolve.
    """

    __tablename__ = "policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_number: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    account_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=True, index=True
    )
    line_of_business_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lines_of_business.id"), nullable=True, index=True
    )
    carrier_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("carriers.id"), nullable=True, index=True
    )
