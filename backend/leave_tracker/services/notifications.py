from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class NotificationKind(enum.StrEnum):
    """Events the notification collaborator knows how to render."""

    LEAVE_SUBMITTED = "LEAVE_SUBMITTED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    CONFLICT_WARNING = "CONFLICT_WARNING"
    TOIL_APPROVED = "TOIL_APPROVED"
    TOIL_REJECTED = "TOIL_REJECTED"


@runtime_checkable
class Notifier(Protocol):
    """Interface for the outbound notification collaborator."""

    async def send(self, kind: NotificationKind, recipients: Sequence[str], template_data: dict[str, Any]) -> bool:
        """Deliver a notification. Returns False when delivery failed."""
        ...


class LoggingNotifier:
    """Default notifier that only records what would have been sent."""

    async def send(self, kind: NotificationKind, recipients: Sequence[str], template_data: dict[str, Any]) -> bool:
        logger.info("Notification %s to %s: %s", kind, ", ".join(recipients), template_data)
        return True


@dataclass
class SentNotification:
    kind: NotificationKind
    recipients: list[str]
    template_data: dict[str, Any]


@dataclass
class InMemoryNotifier:
    """In-memory notifier for testing; can be told to fail."""

    sent: list[SentNotification] = field(default_factory=list)
    fail_with: Exception | None = None

    async def send(self, kind: NotificationKind, recipients: Sequence[str], template_data: dict[str, Any]) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentNotification(kind=kind, recipients=list(recipients), template_data=template_data))
        return True

    def of_kind(self, kind: NotificationKind) -> list[SentNotification]:
        return [n for n in self.sent if n.kind == kind]


class NotificationDispatcher:
    """Fire-and-forget delivery: failures are logged and never reach the caller."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task[None]] = set()

    def dispatch(self, kind: NotificationKind, recipients: Sequence[str | None], template_data: dict[str, Any]) -> None:
        """Schedule a notification on the running loop without awaiting it."""
        addresses = [r for r in recipients if r]
        if not addresses:
            logger.debug("Skipping %s notification: no recipients", kind)
            return
        task = asyncio.get_running_loop().create_task(self._deliver(kind, addresses, template_data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, kind: NotificationKind, recipients: list[str], template_data: dict[str, Any]) -> None:
        try:
            delivered = await self._notifier.send(kind, recipients, template_data)
        except Exception:
            logger.exception("Notification %s to %s failed", kind, ", ".join(recipients))
            return
        if not delivered:
            logger.warning("Notification %s to %s was not delivered", kind, ", ".join(recipients))

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
