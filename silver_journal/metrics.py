"""Derived statistics over the daily record table.

Metrics walk the records in file order. The cutoff filter and the sort/page
view are applied afterwards, so the aggregates always describe the whole
table while ``recordDays`` counts only the records after the cutoff.
"""

from collections import deque
from datetime import date

from .records import parse_float, parse_record_date

WEEK_WINDOW = 7
MONTH_WINDOW = 30
DEFAULT_CUTOFF_DATE = date(2025, 8, 31)
DEFAULT_SORT_KEY = "date"
DEFAULT_SORT_ORDER = "desc"
DEFAULT_PAGE_SIZE = 1000
NUMERIC_SORT_KEYS = {"remaining", "spent", "dailyIncome", "weeklyAvg", "monthlyAvg"}
SORT_KEY_ALIASES = {
    "日期": "date",
    "剩余银币": "remaining",
    "消耗银币": "spent",
    "备注": "note",
    "今日收益": "dailyIncome",
    "周平均收益": "weeklyAvg",
    "月平均收益": "monthlyAvg",
}


def window_mean(window):
    if not window:
        return 0
    return round(sum(window) / len(window), 2)


def compute_metrics(records):
    augmented = []
    last_week = deque(maxlen=WEEK_WINDOW)
    last_month = deque(maxlen=MONTH_WINDOW)
    total_silver = 0
    total_expense = 0

    previous = None
    for record in records:
        row = dict(record)
        if previous is None:
            # the first reading is an opening balance, not a day's flow
            row["dailyIncome"] = row["remaining"]
            row["weeklyAvg"] = 0
            row["monthlyAvg"] = 0
        else:
            income = row["remaining"] - previous["remaining"] + row["spent"]
            last_week.append(income)
            last_month.append(income)
            row["dailyIncome"] = income
            row["weeklyAvg"] = window_mean(last_week)
            row["monthlyAvg"] = window_mean(last_month)

        total_silver = row["remaining"]
        total_expense += row["spent"]
        augmented.append(row)
        previous = row

    incomes = [row["dailyIncome"] for row in augmented]
    totals = {
        "totalSilver": total_silver,
        "totalExpense": total_expense,
        "averageDailyIncome": window_mean(incomes),
    }
    return augmented, totals


def filter_after_cutoff(records, cutoff=DEFAULT_CUTOFF_DATE):
    kept = []
    for record in records:
        parsed = parse_record_date(record.get("date"))
        if parsed is not None and parsed > cutoff:
            kept.append(record)
    return kept


def parse_sort_number(value):
    return parse_float(str(value if value is not None else "").replace(",", ""))


def resolve_sort_key(sort_by):
    sort_by = (sort_by or "").strip() or DEFAULT_SORT_KEY
    return SORT_KEY_ALIASES.get(sort_by, sort_by)


def sort_records(records, sort_by=DEFAULT_SORT_KEY, sort_order=DEFAULT_SORT_ORDER):
    key = resolve_sort_key(sort_by)
    if key in NUMERIC_SORT_KEYS:
        def sort_value(record):
            return parse_sort_number(record.get(key))
    else:
        def sort_value(record):
            value = record.get(key)
            return "" if value is None else str(value)

    descending = (sort_order or DEFAULT_SORT_ORDER).strip().lower() != "asc"
    return sorted(records, key=sort_value, reverse=descending)


def paginate(records, page=1, limit=DEFAULT_PAGE_SIZE):
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else DEFAULT_PAGE_SIZE
    start = (page - 1) * limit
    return records[start:start + limit]


def build_listing(
    records,
    sort_by=DEFAULT_SORT_KEY,
    sort_order=DEFAULT_SORT_ORDER,
    page=1,
    limit=DEFAULT_PAGE_SIZE,
    cutoff=DEFAULT_CUTOFF_DATE,
):
    augmented, totals = compute_metrics(records)
    visible = filter_after_cutoff(augmented, cutoff)
    page_rows = paginate(sort_records(visible, sort_by, sort_order), page, limit)
    return {
        "records": page_rows,
        "data": page_rows,
        "totalSilver": totals["totalSilver"],
        "totalExpense": totals["totalExpense"],
        "averageDailyIncome": totals["averageDailyIncome"],
        "recordDays": len(visible),
    }
