from collections import defaultdict

from .errors import ValidationError
from .records import RecordStore, date_key, normalize_record_date, parse_record_date
from .storage import TABLE_LAYOUT, open_table

NOTE_SLOTS = TABLE_LAYOUT["notes"]["columns"]
TRUE_FLAGS = {"1", "true", "yes", "on", "checked"}


class Journal:
    def __init__(self, data_dir):
        self.data_dir = data_dir
        self.records = RecordStore(data_dir)
        self.notes = open_table(data_dir, "notes")
        self.checkboxes = open_table(data_dir, "checkboxes", normalize_key=date_key)
        self.expense_details = open_table(data_dir, "expense_details", normalize_key=date_key)
        self.guard_inputs = open_table(data_dir, "guard_inputs")


def empty_notes():
    return {slot: "" for slot in NOTE_SLOTS}


def load_notes(table):
    rows = table.read_all()
    if not rows:
        return empty_notes()
    return {slot: rows[0][slot] or "" for slot in NOTE_SLOTS}


def save_notes(table, values):
    notes = {slot: str(values.get(slot) or "") for slot in NOTE_SLOTS}
    table.write_all([notes])
    return notes


def parse_flag(value):
    if isinstance(value, bool):
        return value
    return str(value if value is not None else "").strip().lower() in TRUE_FLAGS


def get_checkboxes(table, date_value):
    row = table.get(normalize_record_date(date_value))
    if row is None:
        return None
    return {"cultivation": parse_flag(row["cultivation"]), "guard": parse_flag(row["guard"])}


def save_checkboxes(table, date_value, cultivation, guard):
    values = {
        "date": normalize_record_date(date_value),
        "cultivation": "true" if parse_flag(cultivation) else "false",
        "guard": "true" if parse_flag(guard) else "false",
    }
    table.upsert(values)
    return values


def get_expense_details(table, date_value):
    row = table.get(normalize_record_date(date_value))
    if row is None:
        return ""
    return row["details"] or ""


def save_expense_details(table, date_value, details):
    values = {"date": normalize_record_date(date_value), "details": details or ""}
    table.upsert(values)
    return values


def append_guard_entries(table, date_value, contents):
    if isinstance(contents, str):
        contents = [contents]
    cleaned = [str(item).strip() for item in contents or [] if item is not None]
    cleaned = [item for item in cleaned if item]
    if not cleaned:
        raise ValidationError("Guard entry content is required")

    entry_date = normalize_record_date(date_value)
    return table.append_many([{"date": entry_date, "content": item} for item in cleaned])


def aggregate_guard_entries(table, start, end):
    start_date = parse_record_date(start)
    end_date = parse_record_date(end)
    if start_date is None or end_date is None:
        raise ValidationError("Both start and end dates are required as YYYY-MM-DD")

    stats = defaultdict(lambda: {"count": 0, "dates": set()})
    for row in table.read_all():
        entry_date = parse_record_date(row["date"])
        if entry_date is None or not start_date <= entry_date <= end_date:
            continue
        content = (row["content"] or "").strip()
        if not content:
            continue
        stats[content]["count"] += 1
        stats[content]["dates"].add(entry_date.isoformat())

    items = [
        {"content": content, "count": group["count"], "dates": sorted(group["dates"])}
        for content, group in stats.items()
    ]
    items.sort(key=lambda item: (-item["count"], item["content"]))
    return items
