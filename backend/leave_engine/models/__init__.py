from sqlmodel import SQLModel

from leave_engine.models.approval import LEAVE_REQUEST_SUBJECT, Approval
from leave_engine.models.audit import AuditLog
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_engine.models.calendar import OrgCalendarDay
from leave_engine.models.comp_off import CompOffCredit
from leave_engine.models.enums import (
    ApprovalDecision,
    AuditAction,
    AuditEntityType,
    CompOffDuration,
    CompOffStatus,
    DurationType,
    HalfDaySegment,
    RequestState,
    ReviewAction,
)
from leave_engine.models.leave_type import LeavePolicy, LeaveType
from leave_engine.models.request import LeaveRequest

__all__ = [
    "LEAVE_REQUEST_SUBJECT",
    "Approval",
    "ApprovalDecision",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "CompOffCredit",
    "CompOffDuration",
    "CompOffStatus",
    "DurationType",
    "HalfDaySegment",
    "LeaveBalance",
    "LeavePolicy",
    "LeaveRequest",
    "LeaveType",
    "OrgCalendarDay",
    "RequestState",
    "ReviewAction",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
