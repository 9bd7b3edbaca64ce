"""CSV rendering of tabular report rows."""

import csv
import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from enum import Enum
from io import StringIO
from typing import Any
from uuid import UUID

NO_DATA = "No data available"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Mapping | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


def records_to_csv(records: Sequence[Mapping[str, Any]]) -> str:
    """
    Serialize uniform records to CSV.

    The header row is taken from the first record's keys. Nested objects and
    lists are JSON-encoded; quoting follows RFC 4180 (fields containing a
    comma, quote or line break are quoted with inner quotes doubled).

    Args:
        records: Rows sharing the same keys

    Returns:
        CSV document, or ``NO_DATA`` when there are no records
    """
    if not records:
        return NO_DATA

    header = list(records[0].keys())
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")

    writer.writerow(header)
    for record in records:
        writer.writerow([_cell(record.get(column)) for column in header])

    # Rows are separated, not terminated, by newlines
    return output.getvalue().removesuffix("\n")
