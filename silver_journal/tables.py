import csv
import logging
import os
import tempfile
from pathlib import Path

from .errors import StorageError

logger = logging.getLogger(__name__)


class TableRow:
    def __init__(self, columns, values):
        self._columns = tuple(columns)
        self._values = dict(zip(self._columns, values))

    def __getitem__(self, key):
        return self._values[key]

    def get(self, key, default=None):
        return self._values.get(key, default)

    def to_dict(self):
        return dict(self._values)


def resolve_header(header_row, aliases):
    mapping = {}
    for name in header_row or []:
        cleaned = (name or "").strip()
        for canonical, options in aliases.items():
            if cleaned == canonical or cleaned in options:
                mapping[name] = canonical
                break
    return mapping


def read_rows(path, columns, aliases=None):
    path = Path(path)
    if not path.exists():
        return []

    aliases = aliases or {}
    try:
        with path.open("r", newline="", encoding="utf-8-sig") as handle:
            reader = csv.DictReader(handle)
            mapping = resolve_header(reader.fieldnames, {col: aliases.get(col, []) for col in columns})
            rows = []
            for raw in reader:
                values = {col: "" for col in columns}
                for source, canonical in mapping.items():
                    values[canonical] = raw.get(source) or ""
                rows.append(TableRow(columns, [values[col] for col in columns]))
    except (OSError, csv.Error, UnicodeDecodeError) as exc:
        raise StorageError(f"Unable to read table {path}: {exc}") from exc
    return rows


def write_rows(path, columns, rows):
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle)
                writer.writerow(columns)
                for row in rows:
                    writer.writerow([row.get(col) if row.get(col) is not None else "" for col in columns])
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
    except (OSError, csv.Error) as exc:
        raise StorageError(f"Unable to write table {path}: {exc}") from exc
    logger.debug("Rewrote %s with %d rows", path, len(rows))


def strip_key(value):
    return (value or "").strip()


class CsvTable:
    def __init__(self, path, columns, aliases=None):
        self.path = Path(path)
        self.columns = tuple(columns)
        self.aliases = aliases or {}

    def exists(self):
        return self.path.exists()

    def read_all(self):
        return read_rows(self.path, self.columns, self.aliases)

    def write_all(self, rows):
        write_rows(self.path, self.columns, rows)


class KeyedTable(CsvTable):
    def __init__(self, path, columns, key="date", aliases=None, normalize_key=None):
        super().__init__(path, columns, aliases=aliases)
        if key not in self.columns:
            raise ValueError(f"Key column {key!r} is not one of {self.columns}")
        self.key = key
        self.normalize_key = normalize_key or strip_key

    def get(self, key_value):
        wanted = self.normalize_key(key_value)
        for row in self.read_all():
            if self.normalize_key(row[self.key]) == wanted:
                return row
        return None

    def upsert(self, values):
        wanted = self.normalize_key(values[self.key])
        rows = [row.to_dict() for row in self.read_all()]
        for row in rows:
            if self.normalize_key(row[self.key]) == wanted:
                row.update({col: values[col] for col in self.columns if col in values})
                break
        else:
            rows.append({col: values.get(col, "") for col in self.columns})
        self.write_all(rows)
        return rows


class AppendOnlyTable(CsvTable):
    def append_many(self, entries):
        entries = [{col: entry.get(col, "") for col in self.columns} for entry in entries]
        if not entries:
            return 0
        rows = [row.to_dict() for row in self.read_all()]
        rows.extend(entries)
        self.write_all(rows)
        return len(entries)
