from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Callable, Optional, TypeVar
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from auth import NotAuthenticatedError
from config import get_settings
from models import Record, RecordKind
from periods import EXPENSE_WINDOW_DAYS, INCOME_WINDOW_DAYS, trailing_period
from schemas import RecordIn
from summary import RECENT_PER_KIND, Summary, build_summary


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordValidationError(ValueError):
    pass


class RecordNotFound(ValueError):
    pass


def _require_user(user_id: Optional[str]) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise NotAuthenticatedError("Not authorized, no user")
    return user_id


def local_now() -> datetime:
    return (
        datetime.now(ZoneInfo(get_settings().timezone))
        .replace(tzinfo=None)
        .replace(microsecond=0)
    )


class RecordService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_user(user_id)

    def _owned(self, kind: RecordKind):
        return select(Record).where(
            Record.user_id == self.user_id, Record.kind == kind
        )

    def create(self, kind: RecordKind, data: RecordIn) -> Record:
        label = (data.label or "").strip()
        if not label:
            raise RecordValidationError(f"{kind.label_title} is required")

        record = Record(
            user_id=self.user_id,
            kind=kind,
            label=label,
            amount_cents=data.amount_cents,
            occurred_on=data.occurred_on or local_now().date(),
            icon=data.icon,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.info(
            f"record_created: kind={kind.value} id={record.id} user={self.user_id}"
        )
        return record

    def get(self, record_id: int) -> Record:
        record = self.session.scalar(
            select(Record).where(
                Record.user_id == self.user_id, Record.id == record_id
            )
        )
        if not record:
            raise RecordNotFound("Record not found")
        return record

    def list_by_owner(self, kind: RecordKind) -> list[Record]:
        stmt = self._owned(kind).order_by(
            Record.occurred_on.desc(), Record.id.desc()
        )
        return list(self.session.scalars(stmt).all())

    def list_since(self, kind: RecordKind, cutoff: date) -> list[Record]:
        stmt = (
            self._owned(kind)
            .where(Record.occurred_on >= cutoff)
            .order_by(Record.occurred_on.desc(), Record.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def recent(self, kind: RecordKind, limit: int = RECENT_PER_KIND) -> list[Record]:
        stmt = (
            self._owned(kind)
            .order_by(Record.occurred_on.desc(), Record.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def sum_by_owner(self, kind: RecordKind) -> int:
        stmt = select(func.coalesce(func.sum(Record.amount_cents), 0)).where(
            Record.user_id == self.user_id, Record.kind == kind
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def delete(self, record_id: int, kind: Optional[RecordKind] = None) -> None:
        # Foreign ids look exactly like missing ones.
        record = self.session.get(Record, record_id)
        if not record or record.user_id != self.user_id:
            raise RecordNotFound("Record not found")
        if kind is not None and record.kind != kind:
            raise RecordNotFound("Record not found")
        deleted_kind = record.kind
        self.session.delete(record)
        self.session.commit()
        logger.info(
            f"record_deleted: kind={deleted_kind.value} id={record_id} user={self.user_id}"
        )


class SummaryService:
    """Dashboard summary for one owner.

    The six store reads are independent, so each runs on its own session in a
    thread pool and the results are combined by :func:`summary.build_summary`.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        user_id: Optional[str],
        *,
        max_workers: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.user_id = _require_user(user_id)
        self.max_workers = max_workers or get_settings().summary_workers

    def _read(self, query: Callable[[RecordService], T]) -> T:
        with self.session_factory() as session:
            return query(RecordService(session, self.user_id))

    def compute(self, now: datetime) -> Summary:
        income_period = trailing_period(INCOME_WINDOW_DAYS, now)
        expense_period = trailing_period(EXPENSE_WINDOW_DAYS, now)

        queries: dict[str, Callable[[RecordService], object]] = {
            "total_income": lambda s: s.sum_by_owner(RecordKind.income),
            "total_expenses": lambda s: s.sum_by_owner(RecordKind.expense),
            "income_window": lambda s: s.list_since(
                RecordKind.income, income_period.start
            ),
            "expense_window": lambda s: s.list_since(
                RecordKind.expense, expense_period.start
            ),
            "recent_income": lambda s: s.recent(RecordKind.income),
            "recent_expenses": lambda s: s.recent(RecordKind.expense),
        }

        started = time.perf_counter()
        if self.max_workers <= 1:
            results = {name: self._read(query) for name, query in queries.items()}
        else:
            workers = min(self.max_workers, len(queries))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="summary"
            ) as pool:
                futures = {
                    name: pool.submit(self._read, query)
                    for name, query in queries.items()
                }
                results = {name: future.result() for name, future in futures.items()}

        summary = build_summary(**results)
        logger.debug(
            f"summary_computed: user={self.user_id} "
            f"elapsed_ms={(time.perf_counter() - started) * 1000:.1f}"
        )
        return summary
