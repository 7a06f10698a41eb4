import csv
import re
from io import StringIO
from typing import Sequence

from models import Record, RecordKind


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def format_amount(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, rest = divmod(abs(cents), 100)
    return f"{sign}{whole}.{rest:02d}"


def export_records(kind: RecordKind, records: Sequence[Record]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow([kind.label_title, "Amount", "Date"])
    for record in records:
        writer.writerow(
            [
                sanitize_csv_value(record.label or ""),
                format_amount(record.amount_cents),
                record.occurred_on.isoformat(),
            ]
        )
    return output.getvalue()


def export_filename(kind: RecordKind) -> str:
    return f"{kind.value}_details.csv"
