import math
import re
from datetime import datetime

from .errors import ValidationError
from .storage import open_table

RECORD_DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%Y%m%d"]
LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_record_date(value):
    cleaned = (value or "").strip()
    if not cleaned:
        return None

    for fmt in RECORD_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def normalize_record_date(value):
    parsed = parse_record_date(value if isinstance(value, str) else "")
    if parsed is None:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return parsed.isoformat()


def date_key(value):
    """Key used to match rows by date, so legacy spellings hit the canonical row."""
    parsed = parse_record_date(value if isinstance(value, str) else "")
    if parsed is None:
        return (value or "").strip()
    return parsed.isoformat()


def parse_int(value):
    """Leading-integer parse: "12.7" -> 12, "1,200" -> 1, "abc" -> 0."""
    match = LEADING_INT.match(str(value if value is not None else ""))
    if not match:
        return 0
    return int(match.group(1))


def parse_float(value):
    match = LEADING_FLOAT.match(str(value if value is not None else ""))
    if not match:
        return 0.0
    number = float(match.group(1))
    return number if math.isfinite(number) else 0.0


def round_amount(value):
    """Round half up like the browser does, so 12.5 -> 13 and -12.5 -> -12."""
    return math.floor(parse_float(value) + 0.5)


def coerce_amount(value):
    text = str(value if value is not None else "").strip()
    if not text:
        return "0"
    try:
        number = float(text)
    except ValueError:
        return "0"
    if not math.isfinite(number):
        return "0"
    return text


def record_from_row(row):
    return {
        "date": date_key(row["date"]),
        "remaining": parse_int(row["remaining"]),
        "spent": parse_int(row["spent"]),
        "note": row["note"] or "",
    }


class RecordStore:
    def __init__(self, data_dir):
        self.table = open_table(data_dir, "data", normalize_key=date_key)

    def load_all(self):
        return [record_from_row(row) for row in self.table.read_all()]

    def get(self, date_value):
        row = self.table.get(normalize_record_date(date_value))
        if row is None:
            return None
        return record_from_row(row)

    def get_rounded(self, date_value, column):
        row = self.table.get(normalize_record_date(date_value))
        if row is None:
            return 0
        return round_amount(row[column])

    def upsert(self, date_value, remaining, spent, note=""):
        values = {
            "date": normalize_record_date(date_value),
            "remaining": coerce_amount(remaining),
            "spent": coerce_amount(spent),
            "note": (note or "").strip(),
        }
        rows = self.table.upsert(values)
        return values, len(rows)
