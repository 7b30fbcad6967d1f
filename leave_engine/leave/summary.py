"""Read-only rollup of a user's ledger rows and open requests."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveStatus
from leave_engine.leave.academic_year import validate_academic_year
from leave_engine.leave.ledger import BalanceLedger
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.schemas import LeaveBalanceOut, LeaveSummaryOut


class LeaveSummaryAggregator:

    @staticmethod
    async def count_requests(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        statuses: Iterable[LeaveStatus] = (LeaveStatus.pending,),
    ) -> int:
        """Count the user's requests whose status is in *statuses* (all years)."""

        result = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.user_id == user_id,
                LeaveRequest.status.in_(list(statuses)),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def summarize(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        academic_year: str,
        *,
        statuses: Iterable[LeaveStatus] = (LeaveStatus.pending,),
    ) -> LeaveSummaryOut:
        """Sum allocated / used / pending over every leave type of the year."""

        validate_academic_year(academic_year)
        balances = await BalanceLedger.list_for_user(
            db, tenant_id, user_id, academic_year,
        )
        open_requests = await LeaveSummaryAggregator.count_requests(
            db, tenant_id, user_id, statuses,
        )

        total_allocated = sum(b.total_allocated for b in balances)
        total_used = sum(b.used for b in balances)
        total_pending = sum(b.pending for b in balances)

        return LeaveSummaryOut(
            user_id=user_id,
            academic_year=academic_year,
            balances=[LeaveBalanceOut.model_validate(b) for b in balances],
            pending_requests=open_requests,
            total_allocated=total_allocated,
            total_used=total_used,
            total_pending=total_pending,
            total_remaining=total_allocated - total_used - total_pending,
        )
