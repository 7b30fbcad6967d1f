"""Overlap detection against already approved leave."""

from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveStatus
from leave_engine.leave.models import LeaveRequest


class OverlapDetector:
    """Read-only queries over approved requests."""

    @staticmethod
    async def find_overlapping(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        start_date: date,
        end_date: date,
    ) -> Sequence[LeaveRequest]:
        """Return the user's approved requests sharing at least one day with
        ``[start_date, end_date]`` (both ends inclusive).

        Pending, rejected and cancelled requests never count.
        """
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.user_id == user_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date)
        )
        return result.scalars().all()
