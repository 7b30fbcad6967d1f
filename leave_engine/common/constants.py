"""Enums and constants for the leave engine."""

from __future__ import annotations

import enum


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# Statuses a request may move to from each status.
LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset({
        LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled,
    }),
    LeaveStatus.approved: frozenset({LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}


# ── Misc constants ──────────────────────────────────────────────────

ACADEMIC_YEAR_START_MONTH = 4     # April
TENANT_HEADER = "X-Tenant-ID"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
