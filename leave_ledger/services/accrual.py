"""Monthly accrual: credit every ledger row with its category's ``accrual_rate``."""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.services import ledger
from leave_ledger.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_ledger.services.jobs import DEFAULT_CONCURRENCY, LedgerJob, Outbox

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)


class AccrualJob(LedgerJob):
    """Adds one month of accrual to every row whose category accrues.

    Rows of inactive categories are left alone unless ``include_inactive``
    is set.
    """

    name = "accrual"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        include_inactive: bool = False,
    ) -> None:
        super().__init__(session_factory, notifier, concurrency=concurrency)
        self._include_inactive = include_inactive

    def _accrues(self, category: LeaveCategory) -> bool:
        return category.accrual_rate > Decimal("0") and (category.active or self._include_inactive)

    async def select_targets(self, session: AsyncSession, now: datetime) -> list[uuid.UUID]:
        query = (
            select(LeaveBalance.id)
            .join(LeaveCategory, col(LeaveCategory.id) == col(LeaveBalance.category_id))
            .where(col(LeaveCategory.accrual_rate) > 0)
        )
        if not self._include_inactive:
            query = query.where(col(LeaveCategory.active).is_(True))
        result = await session.execute(query)
        return list(result.scalars().all())

    async def process(self, session: AsyncSession, target_id: uuid.UUID, now: datetime) -> Outbox | None:
        row = await ledger.get_row_by_id(session, target_id)
        category = await session.get(LeaveCategory, row.category_id)
        if category is None or not self._accrues(category):
            return None

        before_dict = model_to_audit_dict(row)
        updated = await ledger.credit(session, row.id, category.accrual_rate)
        await write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.BALANCE,
            entity_id=updated.id,
            action=AuditAction.ACCRUE,
            before_json=before_dict,
            after_json=model_to_audit_dict(updated),
        )

        outbox = Outbox()
        outbox.add(
            [updated.employee_id],
            f"Your {category.name} leave balance has been increased by {category.accrual_rate:.2f} days. "
            f"New balance: {updated.balance:.2f} days.",
        )
        return outbox
