import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import RecordKind


class RecordIn(BaseModel):
    """Store-level input. Signs and blank labels are checked by the service."""

    label: str
    amount_cents: int
    occurred_on: Optional[dt.date] = None
    icon: Optional[str] = Field(default=None, max_length=255)


class _RecordPayloadIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    icon: Optional[str] = Field(default=None, max_length=255)

    @property
    def label(self) -> str:
        raise NotImplementedError

    def to_record_in(self) -> RecordIn:
        return RecordIn(
            label=self.label,
            amount_cents=int(self.amount * 100),
            occurred_on=self.date,
            icon=self.icon or None,
        )


class IncomeIn(_RecordPayloadIn):
    source: str = Field(..., min_length=1, max_length=100)

    @property
    def label(self) -> str:
        return self.source


class ExpenseIn(_RecordPayloadIn):
    category: str = Field(..., min_length=1, max_length=100)

    @property
    def label(self) -> str:
        return self.category


def payload_schema(kind: RecordKind) -> type[_RecordPayloadIn]:
    return IncomeIn if kind is RecordKind.income else ExpenseIn


class CategorizeIn(BaseModel):
    description: str = Field(..., max_length=500)
