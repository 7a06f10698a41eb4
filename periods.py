from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Union


EXPENSE_WINDOW_DAYS = 30
INCOME_WINDOW_DAYS = 60


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def _as_date(value: Union[datetime, date]) -> date:
    return value.date() if isinstance(value, datetime) else value


def trailing_period(days: int, now: Union[datetime, date]) -> Period:
    """Window of ``days`` ending at ``now``; the cutoff day itself is inside.

    The end is informational only: records dated after ``now`` still count.
    """
    if days < 0:
        raise ValueError("Window length must not be negative")
    start = _as_date(now - timedelta(days=days))
    return Period(f"last_{days}_days", start, _as_date(now))
