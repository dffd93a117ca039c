from datetime import date

from silver_journal.metrics import (
    build_listing,
    compute_metrics,
    filter_after_cutoff,
    paginate,
    parse_sort_number,
    sort_records,
)


def make_records(rows):
    return [
        {"date": row_date, "remaining": remaining, "spent": spent, "note": ""}
        for row_date, remaining, spent in rows
    ]


def test_daily_income_uses_previous_remaining_and_spent():
    records = make_records([
        ("2025-09-01", 100, 0),
        ("2025-09-02", 150, 5),
        ("2025-09-03", 130, 20),
    ])

    augmented, totals = compute_metrics(records)

    assert [row["dailyIncome"] for row in augmented] == [100, 55, 0]
    assert [row["weeklyAvg"] for row in augmented] == [0, 55.0, 27.5]
    assert [row["monthlyAvg"] for row in augmented] == [0, 55.0, 27.5]
    assert totals == {"totalSilver": 130, "totalExpense": 25, "averageDailyIncome": 51.67}


def test_compute_metrics_does_not_mutate_input():
    records = make_records([("2025-09-01", 100, 0), ("2025-09-02", 120, 0)])

    compute_metrics(records)

    assert "dailyIncome" not in records[0]


def test_rolling_windows_are_capped():
    records = make_records([(f"2025-09-{day:02d}", 0, day - 1) for day in range(1, 11)])

    augmented, _ = compute_metrics(records)

    assert [row["dailyIncome"] for row in augmented] == [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
    assert augmented[-1]["weeklyAvg"] == 6.0
    assert augmented[-1]["monthlyAvg"] == 5.0


def test_single_record_table():
    augmented, totals = compute_metrics(make_records([("2025-09-01", 700, 10)]))

    assert augmented[0]["dailyIncome"] == 700
    assert augmented[0]["weeklyAvg"] == 0
    assert augmented[0]["monthlyAvg"] == 0
    assert totals["totalSilver"] == 700
    assert totals["totalExpense"] == 10


def test_empty_table_totals_are_zero():
    augmented, totals = compute_metrics([])

    assert augmented == []
    assert totals == {"totalSilver": 0, "totalExpense": 0, "averageDailyIncome": 0}


def test_total_silver_follows_file_order():
    records = make_records([("2025-09-02", 200, 0), ("2025-09-01", 100, 0)])

    _, totals = compute_metrics(records)

    assert totals["totalSilver"] == 100


def test_cutoff_filter_is_strictly_after():
    records = make_records([
        ("2025-08-31", 1, 0),
        ("2025-09-01", 2, 0),
        ("garbage", 3, 0),
        ("", 4, 0),
    ])

    kept = filter_after_cutoff(records, date(2025, 8, 31))

    assert [row["date"] for row in kept] == ["2025-09-01"]


def test_parse_sort_number_strips_thousands_separators():
    assert parse_sort_number("1,200") == 1200.0
    assert parse_sort_number("12.5abc") == 12.5
    assert parse_sort_number("n/a") == 0.0
    assert parse_sort_number(None) == 0.0


def test_numeric_sort_handles_formatted_strings():
    records = [{"date": "a", "remaining": "1,200"}, {"date": "b", "remaining": "900"}]

    ordered = sort_records(records, "remaining", "asc")

    assert [row["remaining"] for row in ordered] == ["900", "1,200"]


def test_date_sort_is_lexicographic_and_defaults_descending():
    records = [{"date": "2025-09-10"}, {"date": "2025-09-02"}, {"date": "2025-10-01"}]

    assert [row["date"] for row in sort_records(records)] == ["2025-10-01", "2025-09-10", "2025-09-02"]
    assert [row["date"] for row in sort_records(records, "日期", "asc")] == ["2025-09-02", "2025-09-10", "2025-10-01"]


def test_legacy_sort_key_alias_is_numeric():
    records = [{"date": "a", "remaining": 30}, {"date": "b", "remaining": 4}]

    assert [row["remaining"] for row in sort_records(records, "剩余银币", "asc")] == [4, 30]


def test_paginate_slices_and_tolerates_out_of_range():
    items = list(range(5))

    assert paginate(items, 2, 2) == [2, 3]
    assert paginate(items, 3, 2) == [4]
    assert paginate(items, 10, 2) == []
    assert paginate(items, 0, 2) == [0, 1]
    assert paginate(items, 1, 0) == items


def test_listing_counts_filtered_rows_but_totals_whole_table():
    records = make_records([
        ("2025-08-30", 100, 0),
        ("2025-08-31", 120, 10),
        ("2025-09-01", 150, 0),
    ])

    listing = build_listing(records, sort_order="asc")

    assert listing["recordDays"] == 1
    assert [row["date"] for row in listing["records"]] == ["2025-09-01"]
    assert listing["records"] is listing["data"]
    assert listing["totalExpense"] == 10
    assert listing["totalSilver"] == 150
    assert listing["averageDailyIncome"] == 53.33
