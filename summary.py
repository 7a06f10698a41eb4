from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from models import Record


RECENT_PER_KIND = 5


@dataclass(frozen=True)
class WindowTotal:
    total: int
    transactions: list[Record] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: Sequence[Record]) -> WindowTotal:
        items = list(records)
        return cls(total=sum(r.amount_cents for r in items), transactions=items)


@dataclass(frozen=True)
class Summary:
    total_balance: int
    total_income: int
    total_expenses: int
    last_30_days_expenses: WindowTotal
    last_60_days_income: WindowTotal
    recent_transactions: list[Record]


def merge_recent(
    income: Sequence[Record],
    expenses: Sequence[Record],
    limit_per_kind: int = RECENT_PER_KIND,
) -> list[Record]:
    """Newest-first feed of both kinds.

    Inputs are expected newest-first already; only the first ``limit_per_kind``
    of each are used. ``sorted`` is stable, so on equal dates income stays
    ahead of expenses and each group keeps its own order.
    """
    combined = list(income[:limit_per_kind]) + list(expenses[:limit_per_kind])
    return sorted(combined, key=lambda r: r.occurred_on, reverse=True)


def build_summary(
    *,
    total_income: int,
    total_expenses: int,
    income_window: Sequence[Record],
    expense_window: Sequence[Record],
    recent_income: Sequence[Record],
    recent_expenses: Sequence[Record],
) -> Summary:
    total_income = int(total_income or 0)
    total_expenses = int(total_expenses or 0)
    return Summary(
        total_balance=total_income - total_expenses,
        total_income=total_income,
        total_expenses=total_expenses,
        last_30_days_expenses=WindowTotal.from_records(expense_window),
        last_60_days_income=WindowTotal.from_records(income_window),
        recent_transactions=merge_recent(recent_income, recent_expenses),
    )
