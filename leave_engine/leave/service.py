"""Leave service layer — request lifecycle and its ledger side effects.

Business logic:
  - Application with date / reason preconditions and approved-leave overlap check
  - Approval credits ``used`` on the (user, type, academic year) ledger row
  - Rejection records the decision only
  - Cancellation of approved leave restores ``used``; of pending leave it does not
  - Balance, summary and request queries

Lifecycle::

    pending ──► approved ──► cancelled
       │
       ├──────► rejected
       └──────► cancelled

Every status write is a compare-and-swap on the status the caller observed,
and runs in the same unit of work as its ledger adjustment.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.audit import create_audit_entry
from leave_engine.common.clock import Clock, system_clock
from leave_engine.common.constants import LEAVE_TRANSITIONS, LeaveStatus
from leave_engine.common.exceptions import (
    InvalidStateException,
    NotFoundException,
    OverlapException,
    ValidationException,
)
from leave_engine.common.pagination import PaginatedResponse, paginate
from leave_engine.common.unit_of_work import unit_of_work
from leave_engine.leave.academic_year import (
    resolve_academic_year,
    validate_academic_year,
)
from leave_engine.leave.catalog import LeaveTypeCatalog
from leave_engine.leave.ledger import BalanceLedger
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.overlap import OverlapDetector
from leave_engine.leave.schemas import (
    LeaveBalanceOut,
    LeaveRequestOut,
    LeaveSummaryOut,
)
from leave_engine.leave.summary import LeaveSummaryAggregator

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: apply, approve, reject, cancel, balances, summary."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def inclusive_days(start_date: date, end_date: date) -> int:
        return (end_date - start_date).days + 1

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        tenant_id: str,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.id == request_id,
                LeaveRequest.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    def _ensure_transition(
        leave_req: LeaveRequest,
        target: LeaveStatus,
        action: str,
    ) -> None:
        if target not in LEAVE_TRANSITIONS[leave_req.status]:
            logger.warning(
                "Refused to %s leave request %s in status %s",
                action, leave_req.id, leave_req.status.value,
            )
            raise InvalidStateException(
                "leave request", leave_req.status.value, action,
            )

    @staticmethod
    async def _compare_and_set_status(
        db: AsyncSession,
        leave_req: LeaveRequest,
        target: LeaveStatus,
        *,
        action: str,
        now: datetime,
        values: Optional[dict[str, Any]] = None,
    ) -> LeaveRequest:
        """Move *leave_req* from the status it was read with to *target*.

        Only succeeds if the stored status still equals the observed one, so
        two concurrent transitions of the same request cannot both apply.
        Returns the reloaded row.
        """
        observed = leave_req.status
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave_req.id,
                LeaveRequest.tenant_id == leave_req.tenant_id,
                LeaveRequest.status == observed,
            )
            .values(status=target, updated_at=now, **(values or {}))
            .execution_options(synchronize_session=False)
        )
        current = await LeaveService._load_request(
            db, leave_req.tenant_id, leave_req.id,
        )
        if result.rowcount != 1:
            logger.warning(
                "Concurrent change on leave request %s: expected %s, found %s",
                leave_req.id, observed.value, current.status.value,
            )
            raise InvalidStateException(
                "leave request", current.status.value, action,
            )
        return current

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        tenant_id: str,
        *,
        user_id: str,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: str,
        user_name: Optional[str] = None,
        user_role: Optional[str] = None,
        is_half_day: bool = False,
        attachment_url: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Create a pending leave request.

        Preconditions:
        - start_date <= end_date
        - non-blank reason
        - leave type exists in the tenant and is active
        - no approved leave of the same user overlaps the range

        The ledger is not touched; ``used`` changes only on approval.
        """

        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )
        if not reason or not reason.strip():
            raise ValidationException({"reason": ["A reason is required."]})

        await LeaveTypeCatalog.load(db, tenant_id, leave_type_id, active_only=True)

        overlapping = await OverlapDetector.find_overlapping(
            db, tenant_id, user_id, start_date, end_date,
        )
        if overlapping:
            logger.warning(
                "Leave for %s from %s to %s overlaps %d approved request(s)",
                user_id, start_date, end_date, len(overlapping),
            )
            raise OverlapException([r.id for r in overlapping])

        total_days = LeaveService.inclusive_days(start_date, end_date)
        leave_request = LeaveRequest(
            tenant_id=tenant_id,
            leave_type_id=leave_type_id,
            user_id=user_id,
            user_name=user_name,
            user_role=user_role,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            reason=reason.strip(),
            status=LeaveStatus.pending,
            is_half_day=is_half_day,
            attachment_url=attachment_url,
        )

        async with unit_of_work(db, operation="apply leave"):
            db.add(leave_request)
            await db.flush()
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="apply",
                entity_type="leave_request",
                entity_id=leave_request.id,
                actor_id=user_id,
                new_values={
                    "leave_type_id": str(leave_type_id),
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                    "total_days": total_days,
                    "status": LeaveStatus.pending.value,
                },
            )

        logger.info(
            "Leave applied by %s from %s to %s (%d day(s))",
            user_id, start_date, end_date, total_days,
        )
        return LeaveRequestOut.model_validate(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # Approve Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        tenant_id: str,
        request_id: uuid.UUID,
        *,
        approver_id: str,
        approver_name: Optional[str] = None,
        remarks: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> LeaveRequestOut:
        """Approve a pending request and credit ``used`` by its total_days.

        The ledger row is keyed by the academic year of the request's start
        date and is created with the leave type's yearly cap if missing.
        """

        now = clock.now()
        leave_req = await LeaveService._load_request(db, tenant_id, request_id)
        LeaveService._ensure_transition(leave_req, LeaveStatus.approved, "approve")

        leave_type = await LeaveTypeCatalog.load(db, tenant_id, leave_req.leave_type_id)
        academic_year = resolve_academic_year(leave_req.start_date)

        async with unit_of_work(db, operation=f"approve leave request {request_id}"):
            leave_req = await LeaveService._compare_and_set_status(
                db,
                leave_req,
                LeaveStatus.approved,
                action="approve",
                now=now,
                values={
                    "approved_by": approver_id,
                    "approved_by_name": approver_name,
                    "approval_remarks": remarks,
                    "approved_at": now,
                },
            )
            await BalanceLedger.get_or_create(
                db,
                tenant_id,
                leave_req.user_id,
                leave_req.leave_type_id,
                academic_year,
                default_allocation=leave_type.max_days_per_year,
            )
            balance = await BalanceLedger.adjust_used(
                db,
                tenant_id,
                leave_req.user_id,
                leave_req.leave_type_id,
                academic_year,
                leave_req.total_days,
                clock=clock,
            )
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="approve",
                entity_type="leave_request",
                entity_id=leave_req.id,
                actor_id=approver_id,
                old_values={"status": LeaveStatus.pending.value},
                new_values={
                    "status": LeaveStatus.approved.value,
                    "remarks": remarks,
                    "academic_year": academic_year,
                    "used": balance.used,
                },
            )

        logger.info(
            "Leave %s approved by %s; %s used=%d",
            request_id, approver_id, academic_year, balance.used,
        )
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reject Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        tenant_id: str,
        request_id: uuid.UUID,
        *,
        approver_id: str,
        approver_name: Optional[str] = None,
        remarks: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> LeaveRequestOut:
        """Reject a pending request. The ledger is not touched."""

        now = clock.now()
        leave_req = await LeaveService._load_request(db, tenant_id, request_id)
        LeaveService._ensure_transition(leave_req, LeaveStatus.rejected, "reject")

        async with unit_of_work(db, operation=f"reject leave request {request_id}"):
            leave_req = await LeaveService._compare_and_set_status(
                db,
                leave_req,
                LeaveStatus.rejected,
                action="reject",
                now=now,
                values={
                    "approved_by": approver_id,
                    "approved_by_name": approver_name,
                    "approval_remarks": remarks,
                    "approved_at": now,
                },
            )
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="reject",
                entity_type="leave_request",
                entity_id=leave_req.id,
                actor_id=approver_id,
                old_values={"status": LeaveStatus.pending.value},
                new_values={"status": LeaveStatus.rejected.value, "remarks": remarks},
            )

        logger.info("Leave %s rejected by %s", request_id, approver_id)
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        tenant_id: str,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> LeaveRequestOut:
        """Cancel a pending or approved request.

        Cancelling approved leave gives its days back to the same ledger
        row the approval charged.
        """

        now = clock.now()
        leave_req = await LeaveService._load_request(db, tenant_id, request_id)
        LeaveService._ensure_transition(leave_req, LeaveStatus.cancelled, "cancel")

        old_status = leave_req.status
        academic_year = resolve_academic_year(leave_req.start_date)

        async with unit_of_work(db, operation=f"cancel leave request {request_id}"):
            leave_req = await LeaveService._compare_and_set_status(
                db,
                leave_req,
                LeaveStatus.cancelled,
                action="cancel",
                now=now,
                values={"cancelled_at": now},
            )

            restored: Optional[int] = None
            if old_status == LeaveStatus.approved:
                balance = await BalanceLedger.get(
                    db, tenant_id, leave_req.user_id, leave_req.leave_type_id,
                    academic_year,
                )
                if balance is None:
                    logger.warning(
                        "No %s balance for approved leave %s; nothing to restore",
                        academic_year, request_id,
                    )
                else:
                    balance = await BalanceLedger.adjust_used(
                        db,
                        tenant_id,
                        leave_req.user_id,
                        leave_req.leave_type_id,
                        academic_year,
                        -leave_req.total_days,
                        clock=clock,
                    )
                    restored = leave_req.total_days

            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="cancel",
                entity_type="leave_request",
                entity_id=leave_req.id,
                actor_id=actor_id or leave_req.user_id,
                old_values={"status": old_status.value},
                new_values={
                    "status": LeaveStatus.cancelled.value,
                    "restored_days": restored,
                },
            )

        logger.info(
            "Leave %s cancelled (was %s, restored %s day(s))",
            request_id, old_status.value, restored or 0,
        )
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Request queries
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_request(
        db: AsyncSession,
        tenant_id: str,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService._load_request(db, tenant_id, request_id)
        return LeaveRequestOut.model_validate(leave_req)

    @staticmethod
    async def get_my_leaves(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> list[LeaveRequestOut]:
        """A user's requests, newest first."""

        query = (
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.user_id == user_id,
            )
            .order_by(LeaveRequest.created_at.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        result = await db.execute(query)
        return [LeaveRequestOut.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def get_pending_approvals(
        db: AsyncSession,
        tenant_id: str,
    ) -> list[LeaveRequestOut]:
        """Every pending request of the tenant, newest first."""

        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .order_by(LeaveRequest.created_at.desc())
        )
        return [LeaveRequestOut.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def get_all_leave_requests(
        db: AsyncSession,
        tenant_id: str,
        *,
        status: Optional[LeaveStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """All requests of the tenant, newest first, one page at a time."""

        query = (
            select(LeaveRequest)
            .where(LeaveRequest.tenant_id == tenant_id)
            .order_by(LeaveRequest.created_at.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        rows, meta = await paginate(db, query, page=page, page_size=page_size)
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in rows],
            meta=meta,
        )

    # ─────────────────────────────────────────────────────────────────
    # Balance & Summary
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_balance(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        academic_year: Optional[str] = None,
        *,
        clock: Clock = system_clock,
    ) -> list[LeaveBalanceOut]:
        """All ledger rows of a user for one academic year (default: current)."""

        if academic_year is None:
            academic_year = resolve_academic_year(clock=clock)
        validate_academic_year(academic_year)

        balances = await BalanceLedger.list_for_user(
            db, tenant_id, user_id, academic_year,
        )
        return [LeaveBalanceOut.model_validate(b) for b in balances]

    @staticmethod
    async def initialize_balance(
        db: AsyncSession,
        tenant_id: str,
        *,
        user_id: str,
        leave_type_id: uuid.UUID,
        total_allocated: int,
        academic_year: Optional[str] = None,
        actor_id: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> LeaveBalanceOut:
        """Administrative creation of a ledger row (409 if it already exists)."""

        if academic_year is None:
            academic_year = resolve_academic_year(clock=clock)

        balance = await BalanceLedger.initialize(
            db,
            tenant_id,
            user_id,
            leave_type_id,
            academic_year,
            total_allocated,
            actor_id=actor_id,
        )
        return LeaveBalanceOut.model_validate(balance)

    @staticmethod
    async def get_leave_summary(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        academic_year: Optional[str] = None,
        *,
        clock: Clock = system_clock,
    ) -> LeaveSummaryOut:
        """Totals across the user's balances plus the open-request count."""

        if academic_year is None:
            academic_year = resolve_academic_year(clock=clock)

        return await LeaveSummaryAggregator.summarize(
            db, tenant_id, user_id, academic_year,
        )
