"""Leave type catalog — per-tenant policy records maintained by administrators.

Leave types are never physically deleted: "delete" deactivates the type so
historical requests and balances keep a valid reference.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.audit import create_audit_entry
from leave_engine.common.exceptions import ConflictError, NotFoundException
from leave_engine.common.unit_of_work import unit_of_work
from leave_engine.config import settings
from leave_engine.leave.models import LeaveType
from leave_engine.leave.schemas import LeaveTypeCreate, LeaveTypeOut, LeaveTypeUpdate

logger = logging.getLogger(__name__)


class LeaveTypeCatalog:
    """Async CRUD over LeaveType, always filtered by tenant."""

    @staticmethod
    async def load(
        db: AsyncSession,
        tenant_id: str,
        leave_type_id: uuid.UUID,
        *,
        active_only: bool = False,
    ) -> LeaveType:
        """Return the ORM row or raise NotFoundException."""

        query = select(LeaveType).where(
            LeaveType.id == leave_type_id,
            LeaveType.tenant_id == tenant_id,
        )
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))

        leave_type = (await db.execute(query)).scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _name_taken(
        db: AsyncSession,
        tenant_id: str,
        name: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> bool:
        query = select(func.count()).select_from(LeaveType).where(
            LeaveType.tenant_id == tenant_id,
            func.lower(LeaveType.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        return (await db.execute(query)).scalar_one() > 0

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        tenant_id: str,
        *,
        active_only: bool = False,
    ) -> list[LeaveTypeOut]:
        """List the tenant's leave types ordered by name."""

        query = (
            select(LeaveType)
            .where(LeaveType.tenant_id == tenant_id)
            .order_by(LeaveType.name)
        )
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))

        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def get_leave_type(
        db: AsyncSession,
        tenant_id: str,
        leave_type_id: uuid.UUID,
    ) -> LeaveTypeOut:
        leave_type = await LeaveTypeCatalog.load(db, tenant_id, leave_type_id)
        return LeaveTypeOut.model_validate(leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        tenant_id: str,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[str] = None,
    ) -> LeaveTypeOut:
        """Create a leave type; names are unique per tenant (case-insensitive)."""

        name = data.name.strip()
        if await LeaveTypeCatalog._name_taken(db, tenant_id, name):
            raise ConflictError("name", name)

        max_days = data.max_days_per_year
        if max_days is None:
            max_days = settings.DEFAULT_MAX_DAYS_PER_YEAR

        leave_type = LeaveType(
            tenant_id=tenant_id,
            name=name,
            description=data.description,
            max_days_per_year=max_days,
            is_paid=data.is_paid,
            requires_approval=data.requires_approval,
            applicable_roles=data.applicable_roles,
            is_active=data.is_active,
        )

        async with unit_of_work(db, operation="create leave type"):
            db.add(leave_type)
            await db.flush()
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="create",
                entity_type="leave_type",
                entity_id=leave_type.id,
                actor_id=actor_id,
                new_values={"name": name, "max_days_per_year": max_days},
            )

        logger.info("Created leave type %s for tenant %s", name, tenant_id)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        tenant_id: str,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: Optional[str] = None,
    ) -> LeaveTypeOut:
        """Apply the non-null fields of *data* to an existing leave type."""

        leave_type = await LeaveTypeCatalog.load(db, tenant_id, leave_type_id)

        changes = data.model_dump(exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if await LeaveTypeCatalog._name_taken(
                db, tenant_id, changes["name"], exclude_id=leave_type_id,
            ):
                raise ConflictError("name", changes["name"])

        old_values = {field: getattr(leave_type, field) for field in changes}

        async with unit_of_work(db, operation="update leave type"):
            for field, value in changes.items():
                setattr(leave_type, field, value)
            await db.flush()
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="update",
                entity_type="leave_type",
                entity_id=leave_type.id,
                actor_id=actor_id,
                old_values=old_values,
                new_values=changes,
            )

        await db.refresh(leave_type)
        logger.info("Updated leave type %s (%s)", leave_type_id, ", ".join(changes))
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def deactivate_leave_type(
        db: AsyncSession,
        tenant_id: str,
        leave_type_id: uuid.UUID,
        *,
        actor_id: Optional[str] = None,
    ) -> LeaveTypeOut:
        """Retire a leave type. Existing requests and balances are untouched;
        new applications against it are refused."""

        leave_type = await LeaveTypeCatalog.load(db, tenant_id, leave_type_id)
        if not leave_type.is_active:
            return LeaveTypeOut.model_validate(leave_type)

        async with unit_of_work(db, operation="deactivate leave type"):
            leave_type.is_active = False
            await db.flush()
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="deactivate",
                entity_type="leave_type",
                entity_id=leave_type.id,
                actor_id=actor_id,
                old_values={"is_active": True},
                new_values={"is_active": False},
            )

        await db.refresh(leave_type)
        logger.info("Deactivated leave type %s for tenant %s", leave_type_id, tenant_id)
        return LeaveTypeOut.model_validate(leave_type)
