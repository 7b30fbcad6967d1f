"""Leave balance ledger — one row per (tenant, user, leave type, academic year).

``used`` is only ever changed with a single ``UPDATE ... SET used = used +
:delta`` statement so concurrent approvals and cancellations on the same row
cannot overwrite each other. ``remaining`` is derived and never stored.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.audit import create_audit_entry
from leave_engine.common.clock import Clock, system_clock
from leave_engine.common.exceptions import (
    ConflictError,
    NotFoundException,
    TransactionException,
    ValidationException,
)
from leave_engine.common.unit_of_work import unit_of_work
from leave_engine.leave.academic_year import validate_academic_year
from leave_engine.leave.catalog import LeaveTypeCatalog
from leave_engine.leave.models import LeaveBalance

logger = logging.getLogger(__name__)


def _ledger_key(user_id: str, leave_type_id: uuid.UUID, academic_year: str) -> str:
    return f"{user_id}/{leave_type_id}/{academic_year}"


class BalanceLedger:
    """Reads and writes of LeaveBalance rows."""

    @staticmethod
    def _row_filter(
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
    ) -> tuple:
        return (
            LeaveBalance.tenant_id == tenant_id,
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.academic_year == academic_year,
        )

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
    ) -> Optional[LeaveBalance]:
        """Return the ledger row, or None when it was never initialized."""

        result = await db.execute(
            select(LeaveBalance)
            .where(*BalanceLedger._row_filter(
                tenant_id, user_id, leave_type_id, academic_year,
            ))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        academic_year: str,
    ) -> Sequence[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.academic_year == academic_year,
            )
            .order_by(LeaveBalance.created_at, LeaveBalance.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def initialize(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
        total_allocated: int,
        *,
        actor_id: Optional[str] = None,
    ) -> LeaveBalance:
        """Create the ledger row for a triple; fails if it already exists."""

        validate_academic_year(academic_year)
        if total_allocated < 0:
            raise ValidationException(
                {"total_allocated": ["Allocation cannot be negative."]}
            )
        await LeaveTypeCatalog.load(db, tenant_id, leave_type_id)

        key = _ledger_key(user_id, leave_type_id, academic_year)
        if await BalanceLedger.get(
            db, tenant_id, user_id, leave_type_id, academic_year,
        ) is not None:
            raise ConflictError("leave_balance", key)

        balance = LeaveBalance(
            tenant_id=tenant_id,
            user_id=user_id,
            leave_type_id=leave_type_id,
            academic_year=academic_year,
            total_allocated=total_allocated,
            used=0,
            pending=0,
        )
        try:
            async with unit_of_work(db, operation="initialize leave balance"):
                db.add(balance)
                await db.flush()
                await create_audit_entry(
                    db,
                    tenant_id=tenant_id,
                    action="initialize",
                    entity_type="leave_balance",
                    entity_id=balance.id,
                    actor_id=actor_id,
                    new_values={
                        "user_id": user_id,
                        "leave_type_id": str(leave_type_id),
                        "academic_year": academic_year,
                        "total_allocated": total_allocated,
                    },
                )
        except TransactionException as exc:
            # Lost a race with a concurrent initialize of the same triple.
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictError("leave_balance", key) from exc
            raise

        logger.info(
            "Initialized balance %s with %d day(s) for tenant %s",
            key, total_allocated, tenant_id,
        )
        return balance

    @staticmethod
    async def get_or_create(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
        *,
        default_allocation: int,
    ) -> LeaveBalance:
        """Locate the row, creating it with *default_allocation* when absent.

        The insert runs in its own SAVEPOINT: if a concurrent caller created
        the same row first, the unique key rejects ours and theirs is used.
        Must be called inside the caller's unit of work.
        """
        balance = await BalanceLedger.get(
            db, tenant_id, user_id, leave_type_id, academic_year,
        )
        if balance is not None:
            return balance

        balance = LeaveBalance(
            tenant_id=tenant_id,
            user_id=user_id,
            leave_type_id=leave_type_id,
            academic_year=academic_year,
            total_allocated=default_allocation,
            used=0,
            pending=0,
        )
        try:
            async with db.begin_nested():
                db.add(balance)
                await db.flush()
        except IntegrityError:
            existing = await BalanceLedger.get(
                db, tenant_id, user_id, leave_type_id, academic_year,
            )
            if existing is None:
                raise
            logger.info(
                "Balance %s was created concurrently; using the existing row",
                _ledger_key(user_id, leave_type_id, academic_year),
            )
            return existing

        logger.info(
            "Lazily created balance %s with %d day(s)",
            _ledger_key(user_id, leave_type_id, academic_year), default_allocation,
        )
        return balance

    @staticmethod
    async def adjust_used(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
        delta: int,
        *,
        clock: Clock = system_clock,
    ) -> LeaveBalance:
        """Apply ``used += delta`` in one statement; ``used`` never drops below 0.

        Must be called inside the caller's unit of work.
        """
        new_used = LeaveBalance.used + delta
        result = await db.execute(
            update(LeaveBalance)
            .where(*BalanceLedger._row_filter(
                tenant_id, user_id, leave_type_id, academic_year,
            ))
            .values(
                used=case((new_used < 0, 0), else_=new_used),
                updated_at=clock.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundException(
                "LeaveBalance", _ledger_key(user_id, leave_type_id, academic_year),
            )

        balance = await BalanceLedger.get(
            db, tenant_id, user_id, leave_type_id, academic_year,
        )
        logger.debug(
            "Adjusted used by %+d on %s → %d",
            delta, _ledger_key(user_id, leave_type_id, academic_year), balance.used,
        )
        return balance

    @staticmethod
    async def update_allocation(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        leave_type_id: uuid.UUID,
        academic_year: str,
        total_allocated: int,
        *,
        actor_id: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> LeaveBalance:
        """Change the allocation of an existing row; ``used``/``pending`` are kept."""

        if total_allocated < 0:
            raise ValidationException(
                {"total_allocated": ["Allocation cannot be negative."]}
            )
        balance = await BalanceLedger.get(
            db, tenant_id, user_id, leave_type_id, academic_year,
        )
        if balance is None:
            raise NotFoundException(
                "LeaveBalance", _ledger_key(user_id, leave_type_id, academic_year),
            )

        old_allocated = balance.total_allocated
        async with unit_of_work(db, operation="update leave allocation"):
            await db.execute(
                update(LeaveBalance)
                .where(LeaveBalance.id == balance.id)
                .values(
                    total_allocated=total_allocated,
                    updated_at=clock.now(),
                )
                .execution_options(synchronize_session=False)
            )
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="update",
                entity_type="leave_balance",
                entity_id=balance.id,
                actor_id=actor_id,
                old_values={"total_allocated": old_allocated},
                new_values={"total_allocated": total_allocated},
            )

        logger.info(
            "Allocation for %s changed %d → %d",
            _ledger_key(user_id, leave_type_id, academic_year),
            old_allocated, total_allocated,
        )
        return await BalanceLedger.get(
            db, tenant_id, user_id, leave_type_id, academic_year,
        )
