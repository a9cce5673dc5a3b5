from __future__ import annotations

import enum


class ApplicationStatus(enum.StrEnum):
    """State of a leave application."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Role(enum.StrEnum):
    """Directory role of a user."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    CATEGORY = "CATEGORY"
    BALANCE = "BALANCE"
    APPLICATION = "APPLICATION"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REOPEN = "REOPEN"
    ADJUST = "ADJUST"
    ACCRUE = "ACCRUE"
    CARRYOVER = "CARRYOVER"
    EXPIRE = "EXPIRE"
