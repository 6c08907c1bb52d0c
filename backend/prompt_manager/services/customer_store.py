"""Persistence for customer billing records.

The store exposes two distinct update paths: by internal (Clerk) user id and
by Stripe customer id.  Checkout completion is the only Stripe event that
carries our user id, so it is the only place the user -> customer link is
created; every later subscription event can only address the row by
Stripe's own id.

Every write commits and refreshes ``updated_at``.  Database errors propagate.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.core.errors import CustomerNotFound
from prompt_manager.models.schemas import CustomerCreate, CustomerPatch
from prompt_manager.models.tables import Customer, utcnow

logger = logging.getLogger(__name__)


class CustomerStore:
    """Create/read/update access to :class:`Customer` rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, record: CustomerCreate) -> Customer:
        """Insert a new row.

        Raises:
            IntegrityError: a row for ``record.user_id`` already exists.  The
                session is rolled back first so it stays usable.
        """
        now = utcnow()
        customer = Customer(**record.model_dump(), created_at=now, updated_at=now)
        self.db.add(customer)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        await self.db.refresh(customer)
        return customer

    async def get_by_user_id(self, user_id: str) -> Optional[Customer]:
        return await self.db.get(Customer, user_id)

    async def update_by_user_id(self, user_id: str, patch: CustomerPatch) -> Customer:
        """Apply ``patch`` to the row keyed by ``user_id``.

        Raises:
            CustomerNotFound: no row exists for ``user_id``.
        """
        customer = await self.db.get(Customer, user_id)
        if customer is None:
            raise CustomerNotFound("user_id", user_id)
        _apply(customer, patch)
        await self.db.commit()
        await self.db.refresh(customer)
        return customer

    async def update_by_stripe_customer_id(self, stripe_customer_id: str, patch: CustomerPatch) -> Customer:
        """Apply ``patch`` to every row linked to ``stripe_customer_id``.

        The column is not unique, so more than one row can match; all of them
        are updated (logged as a warning) and the first is returned.

        Raises:
            CustomerNotFound: no row is linked to ``stripe_customer_id``.
        """
        result = await self.db.execute(
            select(Customer)
            .where(Customer.stripe_customer_id == stripe_customer_id)
            .order_by(Customer.created_at)
        )
        customers = list(result.scalars().all())
        if not customers:
            raise CustomerNotFound("stripe_customer_id", stripe_customer_id)
        if len(customers) > 1:
            logger.warning(
                "[stripe] %d customers share stripe customer id %s; updating all of them",
                len(customers), stripe_customer_id,
            )
        for customer in customers:
            _apply(customer, patch)
        await self.db.commit()
        for customer in customers:
            await self.db.refresh(customer)
        return customers[0]


def _apply(customer: Customer, patch: CustomerPatch) -> None:
    for field, value in patch.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)
    customer.updated_at = utcnow()


__all__ = ["CustomerStore"]
