import json

from silver_journal.storage import TABLE_LAYOUT, ensure_storage, get_storage_health, main, table_path


def test_ensure_storage_on_empty_dir(tmp_path):
    data_dir = tmp_path / "data"
    media_dir = tmp_path / "media"

    created = ensure_storage(data_dir, media_dir, create_tables=True)
    health = get_storage_health(data_dir, media_dir)

    assert sorted(created) == sorted(TABLE_LAYOUT)
    assert health["ok"] is True
    assert health["missing_tables"] == []
    assert all(columns == [] for columns in health["missing_columns"].values())


def test_ensure_storage_keeps_existing_tables(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    table_path(data_dir, "data").write_text("date,remaining,spent,note\n2025-09-01,5,0,\n", encoding="utf-8")

    created = ensure_storage(data_dir, tmp_path / "media", create_tables=True)

    assert "data" not in created
    assert "2025-09-01" in table_path(data_dir, "data").read_text(encoding="utf-8")


def test_missing_tables_are_reported_but_not_unhealthy(tmp_path):
    ensure_storage(tmp_path / "data", tmp_path / "media")

    health = get_storage_health(tmp_path / "data", tmp_path / "media")

    assert health["ok"] is True
    assert sorted(health["missing_tables"]) == sorted(TABLE_LAYOUT)


def test_legacy_headers_count_as_present(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    table_path(data_dir, "data").write_text("日期,剩余银币,消耗银币,备注\n", encoding="utf-8")
    table_path(data_dir, "checkboxes").write_text("date,修炼瓶,保卫门派\n", encoding="utf-8")

    health = get_storage_health(data_dir)

    assert health["missing_columns"]["data"] == []
    assert health["missing_columns"]["checkboxes"] == []
    assert health["ok"] is True


def test_header_drift_is_unhealthy(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    table_path(data_dir, "expense_details").write_text("day,text\n", encoding="utf-8")

    health = get_storage_health(data_dir)

    assert health["ok"] is False
    assert health["missing_columns"]["expense_details"] == ["date", "details"]


def test_main_initializes_and_reports_health(tmp_path, capsys):
    data_dir = tmp_path / "data"
    media_dir = tmp_path / "media"

    assert main([str(data_dir), "--media-dir", str(media_dir), "--init"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["ok"] is True
    assert report["missing_tables"] == []
    assert table_path(data_dir, "guard_inputs").exists()


def test_main_exits_nonzero_on_header_drift(tmp_path, capsys):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    table_path(data_dir, "data").write_text("day,amount\n", encoding="utf-8")

    assert main([str(data_dir), "--media-dir", str(data_dir)]) == 1
    assert json.loads(capsys.readouterr().out)["missing_columns"]["data"] == ["date", "remaining", "spent", "note"]
