"""Academic year keys on the April–March fiscal boundary.

A key looks like ``"2025-2026"``: it starts on 1 April of the first year and
ends on 31 March of the second.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Optional

from leave_engine.common.clock import Clock, system_clock
from leave_engine.common.constants import ACADEMIC_YEAR_START_MONTH
from leave_engine.common.exceptions import ValidationException

_KEY_RE = re.compile(r"^(\d{4})-(\d{4})$")


def resolve_academic_year(
    reference: Optional[date] = None,
    *,
    clock: Clock = system_clock,
) -> str:
    """Return the academic-year key containing *reference* (default: today)."""
    if reference is None:
        reference = clock.today()
    if reference.month >= ACADEMIC_YEAR_START_MONTH:
        return f"{reference.year}-{reference.year + 1}"
    return f"{reference.year - 1}-{reference.year}"


def academic_year_bounds(key: str) -> tuple[date, date]:
    """Return the first and last day covered by an academic-year key."""
    match = _KEY_RE.match(key or "")
    if match is None or int(match.group(2)) != int(match.group(1)) + 1:
        raise ValidationException(
            {"academic_year": [
                f"'{key}' is not a valid academic year; expected e.g. '2025-2026'."
            ]}
        )
    start_year = int(match.group(1))
    start = date(start_year, ACADEMIC_YEAR_START_MONTH, 1)
    end = date(start_year + 1, ACADEMIC_YEAR_START_MONTH, 1) - timedelta(days=1)
    return start, end


def validate_academic_year(key: str) -> str:
    """Return *key* unchanged if it is well formed, else raise."""
    academic_year_bounds(key)
    return key
