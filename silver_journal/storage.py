import argparse
import csv
import json
from pathlib import Path

from .errors import StorageError
from .tables import AppendOnlyTable, CsvTable, KeyedTable, write_rows


TABLE_LAYOUT = {
    "data": {
        "file": "data.csv",
        "kind": "keyed",
        "columns": ("date", "remaining", "spent", "note"),
        "aliases": {
            "date": ["日期"],
            "remaining": ["剩余银币"],
            "spent": ["消耗银币"],
            "note": ["备注"],
        },
    },
    "notes": {
        "file": "notes.csv",
        "kind": "single",
        "columns": tuple(f"note{i}" for i in range(1, 8)),
        "aliases": {},
    },
    "checkboxes": {
        "file": "checkboxes.csv",
        "kind": "keyed",
        "columns": ("date", "cultivation", "guard"),
        "aliases": {"cultivation": ["修炼瓶"], "guard": ["保卫门派"]},
    },
    "expense_details": {
        "file": "expense_details.csv",
        "kind": "keyed",
        "columns": ("date", "details"),
        "aliases": {},
    },
    "guard_inputs": {
        "file": "guard_inputs.csv",
        "kind": "append",
        "columns": ("date", "content"),
        "aliases": {},
    },
}


def table_path(data_dir, name):
    return Path(data_dir) / TABLE_LAYOUT[name]["file"]


def open_table(data_dir, name, normalize_key=None):
    table_spec = TABLE_LAYOUT[name]
    path = table_path(data_dir, name)
    if table_spec["kind"] == "keyed":
        return KeyedTable(
            path, table_spec["columns"], key="date", aliases=table_spec["aliases"], normalize_key=normalize_key
        )
    if table_spec["kind"] == "append":
        return AppendOnlyTable(path, table_spec["columns"], aliases=table_spec["aliases"])
    return CsvTable(path, table_spec["columns"], aliases=table_spec["aliases"])


def read_header(path):
    try:
        with Path(path).open("r", newline="", encoding="utf-8-sig") as handle:
            return next(csv.reader(handle), [])
    except (OSError, csv.Error, UnicodeDecodeError) as exc:
        raise StorageError(f"Unable to read header of {path}: {exc}") from exc


def ensure_storage(data_dir, media_dir, create_tables=False):
    try:
        Path(data_dir).mkdir(parents=True, exist_ok=True)
        Path(media_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Unable to create storage directories: {exc}") from exc

    created = []
    if create_tables:
        for name, table_spec in TABLE_LAYOUT.items():
            path = table_path(data_dir, name)
            if not path.exists():
                write_rows(path, table_spec["columns"], [])
                created.append(name)
    return created


def get_storage_health(data_dir, media_dir=None):
    missing_tables = []
    missing_columns = {}

    for name, table_spec in TABLE_LAYOUT.items():
        path = table_path(data_dir, name)
        if not path.exists():
            missing_tables.append(name)
            continue

        header = {col.strip() for col in read_header(path)}
        absent = []
        for col in table_spec["columns"]:
            accepted = {col, *table_spec["aliases"].get(col, [])}
            if not header & accepted:
                absent.append(col)
        missing_columns[name] = absent

    media_ok = media_dir is None or Path(media_dir).is_dir()
    return {
        "ok": Path(data_dir).is_dir() and media_ok and not any(missing_columns.values()),
        "data_dir": str(data_dir),
        "media_dir": str(media_dir) if media_dir is not None else None,
        "missing_tables": missing_tables,
        "missing_columns": missing_columns,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check and print journal storage health")
    parser.add_argument("data_dir", nargs="?", default="instance/data", help="Directory holding the CSV tables")
    parser.add_argument("--media-dir", default="instance/media", help="Directory holding uploaded images")
    parser.add_argument("--init", action="store_true", help="Create missing directories and tables before checking")
    args = parser.parse_args(argv)

    if args.init:
        ensure_storage(args.data_dir, args.media_dir, create_tables=True)

    health = get_storage_health(args.data_dir, args.media_dir)
    print(json.dumps(health, indent=2, sort_keys=True))
    return 0 if health["ok"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
