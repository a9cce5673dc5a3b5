"""Year-end carryover and the Jan 31 expiry of the excess it quarantines.

Carryover splits each balance into the part that survives the year boundary
(``carried_over``, at most the category cap) and the part at risk
(``excess_days``) without reducing the balance. Expiry later subtracts the
whole excess from the balance, stopping at zero.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import CategoryNotFoundError
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.services import ledger
from leave_ledger.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_ledger.services.jobs import LedgerJob, Outbox

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def _category_of(session: AsyncSession, row: LeaveBalance) -> LeaveCategory:
    category = await session.get(LeaveCategory, row.category_id)
    if category is None:
        raise CategoryNotFoundError
    return category


def carryover_message(category: LeaveCategory, row: LeaveBalance) -> str:
    """Tell the employee what survives the year boundary and what is at risk."""
    if row.balance <= Decimal("0"):
        return f"You have no {category.name} leave days to carry over into the new year."

    message = f"{row.carried_over:.2f} days of your {category.name} leave have been carried over to the new year."
    if row.excess_days > Decimal("0"):
        message += (
            f" {row.excess_days:.2f} days exceed the carryover limit of {category.max_carryover_days} days"
            " and will expire on January 31 unless used."
        )
    return message


class CarryoverJob(LedgerJob):
    """Recomputes ``carried_over`` and ``excess_days`` of every ledger row."""

    name = "carryover"

    async def select_targets(self, session: AsyncSession, now: datetime) -> list[uuid.UUID]:
        result = await session.execute(select(LeaveBalance.id))
        return list(result.scalars().all())

    async def process(self, session: AsyncSession, target_id: uuid.UUID, now: datetime) -> Outbox | None:
        row = await ledger.get_row_by_id(session, target_id)
        category = await _category_of(session, row)

        before_dict = model_to_audit_dict(row)
        updated = await ledger.apply_carryover(session, row.id, category.max_carryover_days)
        await write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.BALANCE,
            entity_id=updated.id,
            action=AuditAction.CARRYOVER,
            before_json=before_dict,
            after_json=model_to_audit_dict(updated),
        )

        outbox = Outbox()
        outbox.add([updated.employee_id], carryover_message(category, updated))
        return outbox


class ExpiryJob(LedgerJob):
    """Writes off the excess days quarantined by the last carryover.

    Rows without excess days are counted as skipped.
    """

    name = "expiry"

    async def select_targets(self, session: AsyncSession, now: datetime) -> list[uuid.UUID]:
        result = await session.execute(select(LeaveBalance.id).order_by(col(LeaveBalance.employee_id)))
        return list(result.scalars().all())

    async def process(self, session: AsyncSession, target_id: uuid.UUID, now: datetime) -> Outbox | None:
        row = await ledger.get_row_by_id(session, target_id)
        if row.excess_days <= Decimal("0"):
            return None

        category = await _category_of(session, row)
        before_dict = model_to_audit_dict(row)
        outcome = await ledger.apply_expiry(session, row.id)
        if outcome is None:
            return None

        await write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.BALANCE,
            entity_id=outcome.row.id,
            action=AuditAction.EXPIRE,
            before_json=before_dict,
            after_json=model_to_audit_dict(outcome.row),
        )

        outbox = Outbox()
        if outcome.expired_days > Decimal("0"):
            outbox.add(
                [outcome.row.employee_id],
                f"{outcome.expired_days:.2f} days of your {category.name} leave from last year have expired. "
                f"Your current balance is {outcome.row.balance:.2f} days.",
            )
        else:
            logger.info(
                "Leave balance %s is already empty, nothing written off",
                outcome.row.id,
            )
        return outbox
