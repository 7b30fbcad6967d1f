"""Shared FastAPI dependencies — tenant scope, caller identity, clock.

Identity is established by the gateway in front of the engine, which
forwards the authenticated user as ``X-User-*`` headers.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header
from fastapi.exceptions import HTTPException
from pydantic import BaseModel

from leave_engine.common.clock import Clock, system_clock
from leave_engine.common.constants import TENANT_HEADER


class CurrentUser(BaseModel):
    """The authenticated caller as forwarded by the gateway."""

    id: str
    name: Optional[str] = None
    role: Optional[str] = None


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias=TENANT_HEADER),
) -> str:
    """Every leave operation is scoped to the tenant named by this header."""
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(status_code=400, detail=f"Missing {TENANT_HEADER} header.")
    return x_tenant_id.strip()


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> CurrentUser:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-ID header.")
    return CurrentUser(id=x_user_id.strip(), name=x_user_name, role=x_user_role)


def get_clock() -> Clock:
    """Overridden in tests with a fixed clock."""
    return system_clock
