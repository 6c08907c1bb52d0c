"""SQLAlchemy ORM models for the prompt manager API.

If you extend or modify these models remember to add an Alembic revision or
call the ``init_db`` helper during development to recreate the tables.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Enum,
    Text,
)

from prompt_manager.core.database import Base
from .enums import MembershipTier


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Customer(Base):
    """Billing state of one Clerk user.

    Created by the first completed subscription checkout; afterwards Stripe
    events address the row through ``stripe_customer_id``.
    """

    __tablename__ = "customers"

    user_id = Column(String, primary_key=True)
    membership = Column(
        Enum(MembershipTier, name="membership", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MembershipTier.FREE,
    )
    # Stripe customer reference (e.g., "cus_..."); secondary lookup key, not unique
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Prompt(Base):
    """A saved prompt owned by a single user."""

    __tablename__ = "prompts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
