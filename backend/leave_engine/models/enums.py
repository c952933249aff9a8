from __future__ import annotations

import enum


class DurationType(enum.StrEnum):
    """How the hours of a leave request are derived from its date range."""

    HALF_DAY = "half_day"
    FULL_DAY = "full_day"
    CUSTOM = "custom"


class HalfDaySegment(enum.StrEnum):
    """Which half of the working day a half-day leave covers."""

    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"


class RequestState(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ReviewAction(enum.StrEnum):
    """Decision a reviewer can take on a leave request."""

    APPROVE = "approve"
    REJECT = "reject"


class ApprovalDecision(enum.StrEnum):
    """Decision recorded on an approval row."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CompOffDuration(enum.StrEnum):
    """Size of a compensatory-off credit."""

    HALF_DAY = "half_day"
    FULL_DAY = "full_day"


class CompOffStatus(enum.StrEnum):
    """Lifecycle of a compensatory-off credit."""

    GRANTED = "granted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_REQUEST = "LEAVE_REQUEST"
    COMP_OFF_CREDIT = "COMP_OFF_CREDIT"
    CALENDAR_DAY = "CALENDAR_DAY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    GRANT = "GRANT"
    REVOKE = "REVOKE"
    EXPIRE = "EXPIRE"
