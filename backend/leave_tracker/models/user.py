from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from leave_tracker.models.base import TimestampMixin, UUIDBase
from leave_tracker.models.enums import UserRole


class User(UUIDBase, TimestampMixin, table=True):
    """An employee with leave allowances and a denormalized TOIL balance.

    ``toil_balance_hours`` must always equal the sum of ``hours`` over the
    user's APPROVED TOIL entries. Only the TOIL ledger writes it.
    """

    __tablename__ = "app_user"

    email: str = Field(max_length=255, unique=True, index=True)
    name: str | None = Field(default=None, max_length=255)
    role: str = Field(default=UserRole.MEMBER, max_length=50, sa_column_kwargs={"server_default": "MEMBER"})
    annual_leave_allowance: int = Field(default=32)
    sick_leave_allowance: int = Field(default=10)
    toil_balance_hours: float = Field(default=0.0, sa_type=sa.Float, sa_column_kwargs={"server_default": "0"})

    @property
    def display_name(self) -> str:
        """Name shown to colleagues, falling back to the email address."""
        return self.name or self.email
