# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_tracker.models.base import TimestampMixin, UUIDBase
from leave_tracker.models.enums import ToilEntryStatus


class ToilEntry(UUIDBase, TimestampMixin, table=True):
    """Append-only TOIL earn/spend entry with the balance snapshot taken at approval.

    ``hours`` is signed: positive credits the user, negative spends. On approval
    ``new_balance - previous_balance == hours``.
    """

    __tablename__ = "toil_entry"
    __table_args__ = (sa.Index("ix_toil_entry_user_status", "user_id", "status"),)

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    date: datetime.date
    type: str = Field(max_length=50)
    hours: float = Field(sa_type=sa.Float)
    reason: str
    status: str = Field(
        default=ToilEntryStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    leave_request_id: uuid.UUID | None = Field(default=None, index=True)
    approved_by: uuid.UUID | None = None
    approved_at: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejection_reason: str | None = None
    previous_balance: float | None = Field(default=None, sa_type=sa.Float)
    new_balance: float | None = Field(default=None, sa_type=sa.Float)

    @property
    def approved(self) -> bool:
        """Whether the entry counts towards the user's TOIL balance."""
        return self.status == ToilEntryStatus.APPROVED
