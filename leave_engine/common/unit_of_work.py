"""Explicit unit of work around multi-row writes.

Status transitions and their ledger side effects run inside one
``unit_of_work`` block so they are committed together or not at all::

    async with unit_of_work(db):
        await _transition(...)
        await BalanceLedger.adjust_used(...)

A fresh session gets a real transaction; a session that is already inside
one (e.g. the request-scoped session from ``get_db``) gets a SAVEPOINT, so a
failure undoes only the unit and leaves the outer transaction usable.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.exceptions import TransactionException

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(
    session: AsyncSession,
    *,
    operation: str = "unit of work",
) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block atomically on *session*.

    Domain exceptions raised inside the block roll the unit back and
    propagate unchanged. Storage errors roll it back and are re-raised as
    ``TransactionException``.
    """
    if session.in_transaction():
        transaction = session.begin_nested()
    else:
        transaction = session.begin()

    try:
        async with transaction:
            yield session
    except SQLAlchemyError as exc:
        logger.error("%s failed, rolled back", operation, exc_info=True)
        raise TransactionException(operation) from exc
