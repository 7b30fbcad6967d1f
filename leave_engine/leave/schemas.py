"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)

Request schemas only bound field sizes; business preconditions (date order,
blank reason, negative allocation) are enforced by the service layer.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from leave_engine.common.constants import LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    """Payload for creating a leave type."""

    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    max_days_per_year: Optional[int] = Field(
        None, ge=0, description="Yearly cap; defaults to the configured value"
    )
    is_paid: bool = True
    requires_approval: bool = True
    applicable_roles: Optional[str] = Field(
        None, max_length=200, description="Comma-separated roles, e.g. teacher,staff"
    )
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    """Partial update; fields left as None are not changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    max_days_per_year: Optional[int] = Field(None, ge=0)
    is_paid: Optional[bool] = None
    requires_approval: Optional[bool] = None
    applicable_roles: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    name: str
    description: Optional[str] = None
    max_days_per_year: int
    is_paid: bool = True
    requires_approval: bool = True
    applicable_roles: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(..., max_length=500)
    is_half_day: bool = False
    attachment_url: Optional[str] = Field(None, max_length=500)


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    leave_type_id: uuid.UUID
    user_id: str
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatus
    is_half_day: bool = False
    attachment_url: Optional[str] = None
    approved_by: Optional[str] = None
    approved_by_name: Optional[str] = None
    approval_remarks: Optional[str] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeaveDecisionRequest(BaseModel):
    """Payload for approving or rejecting a leave request."""

    remarks: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class BalanceInitializeRequest(BaseModel):
    """Administrator payload for creating a ledger row."""

    user_id: str = Field(..., min_length=1, max_length=50)
    leave_type_id: uuid.UUID
    academic_year: Optional[str] = Field(
        None, max_length=20, description="e.g. 2025-2026; defaults to the current year"
    )
    total_allocated: int


class LeaveBalanceOut(BaseModel):
    """Ledger row with the derived remaining count."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    user_id: str
    leave_type_id: uuid.UUID
    academic_year: str
    total_allocated: int
    used: int
    pending: int

    @computed_field
    @property
    def remaining(self) -> int:
        return self.total_allocated - self.used - self.pending


# ═════════════════════════════════════════════════════════════════════
# Summary
# ═════════════════════════════════════════════════════════════════════


class LeaveSummaryOut(BaseModel):
    """Rollup of a user's ledger rows for one academic year."""

    user_id: str
    academic_year: str
    balances: list[LeaveBalanceOut]
    pending_requests: int = 0
    total_allocated: int = 0
    total_used: int = 0
    total_pending: int = 0
    total_remaining: int = 0
