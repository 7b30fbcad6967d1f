"""Common module — shared utilities for the leave engine."""

from leave_engine.common.audit import AuditTrail, create_audit_entry
from leave_engine.common.clock import Clock, SystemClock, system_clock
from leave_engine.common.constants import (
    ACADEMIC_YEAR_START_MONTH,
    DEFAULT_PAGE_SIZE,
    LEAVE_TRANSITIONS,
    MAX_PAGE_SIZE,
    TENANT_HEADER,
    LeaveStatus,
)
from leave_engine.common.exceptions import (
    AppException,
    ConflictError,
    InvalidStateException,
    NotFoundException,
    OverlapException,
    TransactionException,
    ValidationException,
    register_exception_handlers,
)
from leave_engine.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from leave_engine.common.unit_of_work import unit_of_work

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Clock
    "Clock",
    "SystemClock",
    "system_clock",
    # Constants / Enums
    "LeaveStatus",
    "LEAVE_TRANSITIONS",
    "ACADEMIC_YEAR_START_MONTH",
    "TENANT_HEADER",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "InvalidStateException",
    "NotFoundException",
    "OverlapException",
    "TransactionException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # Transactions
    "unit_of_work",
]
