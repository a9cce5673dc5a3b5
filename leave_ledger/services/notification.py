"""Notification bridge: best-effort fan-out of ledger and workflow events.

``notify`` and ``notify_approvers`` never block the caller and never raise.
Delivery happens in a background task that resolves each recipient through
the employee directory, stores an in-app ``Notification`` row and hands the
message to an optional transport. For approvers the audience itself is looked
up in that task too. Failures are logged and dropped; the ledger write that
triggered the notification is already committed and is never touched again.
"""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Coroutine, Iterable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
from sqlalchemy import func, select, update
from sqlmodel import col

from leave_ledger.exceptions import NotFoundError
from leave_ledger.models.notification import Notification
from leave_ledger.schemas.notification import NotificationListResponse, NotificationResponse
from leave_ledger.services.directory import notification_audience

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.services.directory import EmployeeDirectory, EmployeeInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget notification capability consumed by the ledger."""

    def notify(self, recipient_ids: Iterable[uuid.UUID], message: str) -> None: ...

    def notify_approvers(self, department: str | None, message: str) -> None:
        """Notify the admins and the managers of ``department``."""
        ...


class NotificationTransport(Protocol):
    """Outbound delivery channel (email relay, push gateway, ...)."""

    async def send(self, recipient: EmployeeInfo, message: str) -> None: ...


class WebhookTransport:
    """Posts each notification as JSON to an external delivery service."""

    def __init__(self, url: str, *, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def send(self, recipient: EmployeeInfo, message: str) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                self._url,
                json={
                    "user_id": str(recipient.id),
                    "email": recipient.email,
                    "name": recipient.name,
                    "message": message,
                },
            )
            response.raise_for_status()


class NullNotifier:
    """Drops every notification. Used when notifications are disabled."""

    def notify(self, recipient_ids: Iterable[uuid.UUID], message: str) -> None:
        logger.debug("Notifications disabled, dropping: %s", message)

    def notify_approvers(self, department: str | None, message: str) -> None:
        logger.debug("Notifications disabled, dropping: %s", message)


class NotificationBridge:
    """Default ``Notifier``: background delivery through the directory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: EmployeeDirectory,
        transport: NotificationTransport | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._directory = directory
        self._transport = transport
        self._pending: set[asyncio.Task[None]] = set()

    def notify(self, recipient_ids: Iterable[uuid.UUID], message: str) -> None:
        recipients = list(dict.fromkeys(recipient_ids))
        if not recipients:
            return
        self._spawn(self._deliver(recipients, message), message)

    def notify_approvers(self, department: str | None, message: str) -> None:
        self._spawn(self._deliver_to_approvers(department, message), message)

    def _spawn(self, delivery: Coroutine[Any, Any, None], message: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(delivery)
        except RuntimeError:
            delivery.close()
            logger.warning("No running event loop, notification dropped: %s", message)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver_to_approvers(self, department: str | None, message: str) -> None:
        try:
            recipients = notification_audience(await self._directory.lookup_all(), department)
        except Exception:
            logger.exception("Could not resolve approvers of department=%s", department)
            return
        await self._deliver(recipients, message)

    async def _deliver(self, recipients: list[uuid.UUID], message: str) -> None:
        for recipient_id in recipients:
            try:
                await self._deliver_one(recipient_id, message)
            except Exception:
                logger.exception("Notification delivery failed for user=%s", recipient_id)

    async def _deliver_one(self, recipient_id: uuid.UUID, message: str) -> None:
        recipient = await self._directory.lookup_by_id(recipient_id)
        if recipient is None:
            logger.info("User %s not found in directory, skipping notification", recipient_id)
            return

        async with self._session_factory() as session:
            session.add(Notification(user_id=recipient_id, message=message))
            await session.commit()

        if self._transport is not None:
            await self._transport.send(recipient, message)


# ---------------------------------------------------------------------------
# Recipient-facing reads
# ---------------------------------------------------------------------------


def _build_notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        message=notification.message,
        read=notification.read,
        created_at=notification.created_at,
    )


async def list_notifications(
    session: AsyncSession,
    user_id: uuid.UUID,
    offset: int = 0,
    limit: int = 50,
) -> NotificationListResponse:
    """List a user's notifications, newest first."""
    base_filter = col(Notification.user_id) == user_id

    total = (await session.execute(select(func.count()).select_from(Notification).where(base_filter))).scalar_one()
    unread = (
        await session.execute(
            select(func.count()).select_from(Notification).where(base_filter, col(Notification.read).is_(False))
        )
    ).scalar_one()

    result = await session.execute(
        select(Notification)
        .where(base_filter)
        .order_by(col(Notification.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return NotificationListResponse(
        items=[_build_notification_response(n) for n in result.scalars().all()],
        total=total,
        unread=unread,
    )


async def mark_read(session: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> NotificationResponse:
    """Mark one of the user's notifications as read."""
    result = await session.execute(
        select(Notification).where(
            col(Notification.id) == notification_id,
            col(Notification.user_id) == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")

    notification.read = True
    await session.commit()
    await session.refresh(notification)
    return _build_notification_response(notification)


async def mark_all_read(session: AsyncSession, user_id: uuid.UUID) -> NotificationListResponse:
    """Mark every unread notification of the user as read."""
    await session.execute(
        update(Notification)
        .where(col(Notification.user_id) == user_id, col(Notification.read).is_(False))
        .values(read=True)
    )
    await session.commit()
    return await list_notifications(session, user_id)
