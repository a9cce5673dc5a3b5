from sqlmodel import SQLModel

from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import ApplicationStatus, AuditAction, AuditEntityType, Role
from leave_ledger.models.job_run import JobRun
from leave_ledger.models.notification import Notification

__all__ = [
    "ApplicationStatus",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "JobRun",
    "LeaveApplication",
    "LeaveBalance",
    "LeaveCategory",
    "Notification",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
