from __future__ import annotations

import enum


class UserRole(enum.StrEnum):
    """Role of an authenticated principal."""

    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class LeaveType(enum.StrEnum):
    """Kind of absence a leave request draws on."""

    ANNUAL = "ANNUAL"
    SICK = "SICK"
    UNPAID = "UNPAID"
    TOIL = "TOIL"


class LeaveStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ToilType(enum.StrEnum):
    """Reason a TOIL entry was earned, or LEAVE_TAKEN for hours spent as TOIL leave."""

    TRAVEL_LATE_RETURN = "TRAVEL_LATE_RETURN"
    WEEKEND_TRAVEL = "WEEKEND_TRAVEL"
    AGENT_PANEL_DAY = "AGENT_PANEL_DAY"
    OVERTIME = "OVERTIME"
    LEAVE_TAKEN = "LEAVE_TAKEN"


class ToilEntryStatus(enum.StrEnum):
    """Approval state of a TOIL entry. Only APPROVED entries count towards the balance."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_REQUEST = "LEAVE_REQUEST"
    TOIL_ENTRY = "TOIL_ENTRY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    CREDIT = "CREDIT"
    TOIL_CREDIT_FAILED = "TOIL_CREDIT_FAILED"


_TERMINAL = frozenset()

LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: _TERMINAL,
    LeaveStatus.REJECTED: _TERMINAL,
    LeaveStatus.CANCELLED: _TERMINAL,
}

TOIL_TRANSITIONS: dict[ToilEntryStatus, frozenset[ToilEntryStatus]] = {
    ToilEntryStatus.PENDING: frozenset({ToilEntryStatus.APPROVED, ToilEntryStatus.REJECTED}),
    ToilEntryStatus.APPROVED: _TERMINAL,
    ToilEntryStatus.REJECTED: _TERMINAL,
}


def can_transition(current: LeaveStatus, target: LeaveStatus) -> bool:
    """Return True when the leave state machine allows current -> target."""
    return target in LEAVE_TRANSITIONS[current]


def can_transition_toil(current: ToilEntryStatus, target: ToilEntryStatus) -> bool:
    """Return True when the TOIL entry state machine allows current -> target."""
    return target in TOIL_TRANSITIONS[current]
