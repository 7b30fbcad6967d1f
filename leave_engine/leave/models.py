"""Leave ORM models: LeaveType, LeaveRequest, LeaveBalance.

Rows reference each other by plain identifier columns only; related rows
are looked up explicitly by the service layer.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.constants import LeaveStatus
from leave_engine.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "name", name="uq_leave_type_tenant_name"),
        sa.Index("idx_leave_type_tenant", "tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(200))
    max_days_per_year: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=12, server_default=sa.text("12")
    )
    is_paid: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )
    requires_approval: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )
    # Comma-separated role names, e.g. "teacher,staff"
    applicable_roles: Mapped[Optional[str]] = mapped_column(sa.String(200))
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_req_date_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_leave_req_status",
        ),
        sa.Index("idx_leave_req_tenant_user", "tenant_id", "user_id"),
        sa.Index("idx_leave_req_status", "status"),
        sa.Index("idx_leave_req_dates", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    user_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    user_role: Mapped[Optional[str]] = mapped_column(sa.String(30))
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", native_enum=False, length=20),
        nullable=False,
        default=LeaveStatus.pending,
    )
    is_half_day: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    attachment_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(50))
    approved_by_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    approval_remarks: Mapped[Optional[str]] = mapped_column(sa.String(500))
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id",
            "user_id",
            "leave_type_id",
            "academic_year",
            name="uq_leave_balance",
        ),
        sa.CheckConstraint("used >= 0", name="ck_leave_bal_used_nonneg"),
        sa.Index("idx_leave_bal_tenant_user", "tenant_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    user_id: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    academic_year: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    total_allocated: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    pending: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    @property
    def remaining(self) -> int:
        return self.total_allocated - self.used - self.pending
