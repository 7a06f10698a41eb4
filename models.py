from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, Enum as SAEnum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RecordKind(str, Enum):
    income = "income"
    expense = "expense"

    @property
    def label_field(self) -> str:
        """Name of the label on the wire: income has a source, expense a category."""
        return "source" if self is RecordKind.income else "category"

    @property
    def label_title(self) -> str:
        return self.label_field.capitalize()


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Record(Base, TimestampMixin):
    __tablename__ = "records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[RecordKind] = mapped_column(SAEnum(RecordKind), nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    # signed on purpose; HTTP entry points reject amounts <= 0
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_records_user_kind_date", "user_id", "kind", "occurred_on"),
    )

    def __repr__(self) -> str:
        return (
            f"Record(id={self.id!r}, kind={self.kind.value}, label={self.label!r}, "
            f"amount_cents={self.amount_cents}, occurred_on={self.occurred_on})"
        )
