"""Leave router — leave types, apply / approve / reject / cancel, balances, summary.

Tenant scope comes from ``X-Tenant-ID``; the caller from ``X-User-*``.
Role enforcement is left to the gateway.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.clock import Clock
from leave_engine.common.constants import LeaveStatus
from leave_engine.common.pagination import PaginatedResponse, PaginationParams
from leave_engine.common.rate_limit import limiter
from leave_engine.database import get_db
from leave_engine.dependencies import (
    CurrentUser,
    get_clock,
    get_current_user,
    get_tenant_id,
)
from leave_engine.leave.catalog import LeaveTypeCatalog
from leave_engine.leave.schemas import (
    BalanceInitializeRequest,
    LeaveBalanceOut,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveSummaryOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from leave_engine.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════

@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveTypeCatalog.create_leave_type(
        db, tenant_id, body, actor_id=user.id,
    )


@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    active_only: bool = Query(False),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """List the tenant's leave types, optionally only the active ones."""
    return await LeaveTypeCatalog.get_leave_types(
        db, tenant_id, active_only=active_only,
    )


@router.get("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveTypeCatalog.get_leave_type(db, tenant_id, leave_type_id)


@router.put("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveTypeCatalog.update_leave_type(
        db, tenant_id, leave_type_id, body, actor_id=user.id,
    )


@router.delete("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave types are deactivated, never removed."""
    return await LeaveTypeCatalog.deactivate_leave_type(
        db, tenant_id, leave_type_id, actor_id=user.id,
    )


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════

# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("30/minute")
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, reason, leave type and overlap."""
    return await LeaveService.apply_leave(
        db,
        tenant_id,
        user_id=user.id,
        user_name=user.name,
        user_role=user.role,
        leave_type_id=body.leave_type_id,
        start_date=body.start_date,
        end_date=body.end_date,
        reason=body.reason,
        is_half_day=body.is_half_day,
        attachment_url=body.attachment_url,
    )


# ── GET /my-leaves ──────────────────────────────────────────────────

@router.get("/my-leaves", response_model=list[LeaveRequestOut])
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_my_leaves(db, tenant_id, user.id, status=status)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_all_leave_requests(
        db,
        tenant_id,
        status=status,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_approvals(
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_pending_approvals(db, tenant_id)


@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_request(db, tenant_id, request_id)


# ── PUT /{id}/approve ───────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveDecisionRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Charges the balance ledger."""
    return await LeaveService.approve_leave(
        db,
        tenant_id,
        request_id,
        approver_id=user.id,
        approver_name=user.name,
        remarks=body.remarks if body else None,
        clock=clock,
    )


# ── PUT /{id}/reject ────────────────────────────────────────────────

@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveDecisionRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject_leave(
        db,
        tenant_id,
        request_id,
        approver_id=user.id,
        approver_name=user.name,
        remarks=body.remarks if body else None,
        clock=clock,
    )


# ── PUT /{id}/cancel ────────────────────────────────────────────────

@router.put("/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or approved request; approved days are restored."""
    return await LeaveService.cancel_leave(
        db, tenant_id, request_id, actor_id=user.id, clock=clock,
    )


# ═════════════════════════════════════════════════════════════════════
# Balances & summary
# ═════════════════════════════════════════════════════════════════════

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    academic_year: Optional[str] = Query(None, description="e.g. 2025-2026"),
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balances; defaults to the current academic year."""
    return await LeaveService.get_leave_balance(
        db, tenant_id, user.id, academic_year, clock=clock,
    )


@router.post("/balances/initialize", response_model=LeaveBalanceOut, status_code=201)
async def initialize_balance(
    body: BalanceInitializeRequest,
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.initialize_balance(
        db,
        tenant_id,
        user_id=body.user_id,
        leave_type_id=body.leave_type_id,
        total_allocated=body.total_allocated,
        academic_year=body.academic_year,
        actor_id=user.id,
        clock=clock,
    )


@router.get("/balances/{user_id}", response_model=list[LeaveBalanceOut])
async def user_balances(
    user_id: str,
    academic_year: Optional[str] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_balance(
        db, tenant_id, user_id, academic_year, clock=clock,
    )


@router.get("/summary", response_model=LeaveSummaryOut)
async def my_summary(
    academic_year: Optional[str] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_summary(
        db, tenant_id, user.id, academic_year, clock=clock,
    )


@router.get("/summary/{user_id}", response_model=LeaveSummaryOut)
async def user_summary(
    user_id: str,
    academic_year: Optional[str] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_summary(
        db, tenant_id, user_id, academic_year, clock=clock,
    )
