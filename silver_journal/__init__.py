import os
from datetime import date

from flask import Flask, g, jsonify, request, send_from_directory

from .errors import MediaNotFoundError, StorageError, ValidationError
from .journal import (
    NOTE_SLOTS,
    Journal,
    aggregate_guard_entries,
    append_guard_entries,
    get_checkboxes,
    get_expense_details,
    load_notes,
    save_checkboxes,
    save_expense_details,
    save_notes,
)
from .media import MediaDirectory
from .metrics import DEFAULT_SORT_KEY, DEFAULT_SORT_ORDER, build_listing
from .records import parse_record_date
from .storage import ensure_storage, get_storage_health

PARAM_ALIASES = {
    "date": ["日期"],
    "remaining": ["剩余银币"],
    "spent": ["消耗银币"],
    "note": ["备注"],
    "cultivation": ["修炼瓶"],
    "guard": ["保卫门派"],
}


def parse_positive_int(value, default):
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def request_payload():
    if request.is_json:
        payload = request.get_json(silent=True)
        if isinstance(payload, dict):
            return payload
    return {}


def param(name, default=None):
    payload = request_payload()
    for key in [name, *PARAM_ALIASES.get(name, [])]:
        if key in request.args:
            return request.args.get(key)
        if key in request.form:
            return request.form.get(key)
        if key in payload:
            return payload[key]
    return default


def param_list(name):
    payload = request_payload()
    if name in payload:
        value = payload[name]
        return value if isinstance(value, list) else [value]
    values = request.form.getlist(name) or request.args.getlist(name)
    return values


def require_param(name):
    value = param(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing required parameter {name!r}")
    return value


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        DATA_DIR=os.environ.get("DATA_DIR") or os.path.join(app.instance_path, "data"),
        MEDIA_DIR=os.environ.get("MEDIA_DIR") or os.path.join(app.instance_path, "media"),
        RECORD_CUTOFF_DATE="2025-08-31",
        DEFAULT_PAGE_SIZE=1000,
        MAX_CONTENT_LENGTH=16 * 1024 * 1024,
    )

    if test_config is not None:
        app.config.update(test_config)

    app.config.setdefault("STORAGE_INIT_ERROR", None)

    def get_journal():
        if "journal" not in g:
            g.journal = Journal(app.config["DATA_DIR"])
        return g.journal

    def get_media():
        if "media" not in g:
            g.media = MediaDirectory(app.config["MEDIA_DIR"])
        return g.media

    def cutoff_date():
        cutoff = app.config["RECORD_CUTOFF_DATE"]
        if isinstance(cutoff, date):
            return cutoff
        parsed = parse_record_date(cutoff)
        if parsed is None:
            raise RuntimeError(f"RECORD_CUTOFF_DATE is not a valid date: {cutoff!r}")
        return parsed

    def init_storage(create_tables=False):
        try:
            created = ensure_storage(app.config["DATA_DIR"], app.config["MEDIA_DIR"], create_tables=create_tables)
            app.config["STORAGE_INIT_ERROR"] = None
        except StorageError as exc:
            message = f"Failed to initialize storage under {app.config['DATA_DIR']}: {exc}"
            app.logger.error(message)
            app.config["STORAGE_INIT_ERROR"] = message
            raise
        return created

    @app.cli.command("init-data")
    def init_data_command():
        created = init_storage(create_tables=True)
        print(f"Initialized storage. Created tables: {', '.join(created) or 'none'}")

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        app.logger.warning("Rejected %s %s: %s", request.method, request.path, exc)
        return jsonify({"success": False, "error": str(exc)}), 400

    @app.errorhandler(MediaNotFoundError)
    def handle_media_not_found(exc):
        app.logger.warning("Image not found for %s %s: %s", request.method, request.path, exc)
        return jsonify({"success": False, "error": f"File not found: {exc}"}), 404

    @app.errorhandler(StorageError)
    def handle_storage_error(exc):
        app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": "Storage failure"}), 500

    @app.before_request
    def check_storage():
        if app.config.get("STORAGE_INIT_ERROR") and request.endpoint != "storage_health":
            return jsonify({"success": False, "error": app.config["STORAGE_INIT_ERROR"]}), 500
        return None

    @app.get("/health/storage")
    def storage_health():
        return jsonify(get_storage_health(app.config["DATA_DIR"], app.config["MEDIA_DIR"]))

    @app.get("/data")
    def list_records():
        listing = build_listing(
            get_journal().records.load_all(),
            sort_by=request.args.get("sortBy") or DEFAULT_SORT_KEY,
            sort_order=request.args.get("sortOrder") or DEFAULT_SORT_ORDER,
            page=parse_positive_int(request.args.get("page"), 1),
            limit=parse_positive_int(request.args.get("limit"), app.config["DEFAULT_PAGE_SIZE"]),
            cutoff=cutoff_date(),
        )
        return jsonify(listing)

    @app.post("/add")
    def add_record():
        date_value = require_param("date")
        record, row_count = get_journal().records.upsert(
            date_value,
            param("remaining", ""),
            param("spent", ""),
            param("note", ""),
        )
        app.logger.info("Saved record for %s (table has %s rows)", record["date"], row_count)
        return jsonify({"success": True, "record": record})

    @app.get("/get_daily_data")
    def get_daily_data():
        record = get_journal().records.get(require_param("date"))
        if record is None:
            return jsonify({"remaining": 0, "spent": 0, "exists": False})
        return jsonify({"remaining": record["remaining"], "spent": record["spent"], "exists": True})

    @app.get("/get_remaining")
    def get_remaining():
        remaining = get_journal().records.get_rounded(require_param("date"), "remaining")
        return jsonify({"success": True, "remaining": remaining})

    @app.get("/get_expense")
    def get_expense():
        expense = get_journal().records.get_rounded(require_param("date"), "spent")
        return jsonify({"success": True, "expense": expense})

    @app.get("/get_notes")
    def get_notes():
        return jsonify(load_notes(get_journal().notes))

    @app.post("/save_notes")
    def save_notes_route():
        notes = save_notes(get_journal().notes, {slot: param(slot, "") for slot in NOTE_SLOTS})
        app.logger.info("Saved notes (%s non-empty slots)", sum(1 for value in notes.values() if value))
        return jsonify({"success": True, "notes": notes})

    @app.get("/get_checkboxes")
    def get_checkboxes_route():
        state = get_checkboxes(get_journal().checkboxes, require_param("date"))
        if state is None:
            return jsonify({"success": True, "exists": False})
        return jsonify({"success": True, "exists": True, **state})

    @app.post("/save_checkboxes")
    def save_checkboxes_route():
        values = save_checkboxes(
            get_journal().checkboxes,
            require_param("date"),
            param("cultivation"),
            param("guard"),
        )
        app.logger.info("Saved checkboxes for %s", values["date"])
        return jsonify({"success": True})

    @app.get("/get_expense_details")
    def get_expense_details_route():
        details = get_expense_details(get_journal().expense_details, require_param("date"))
        return jsonify({"success": True, "details": details})

    @app.post("/save_expense_details")
    def save_expense_details_route():
        values = save_expense_details(
            get_journal().expense_details,
            require_param("date"),
            param("details", ""),
        )
        app.logger.info("Saved expense details for %s", values["date"])
        return jsonify({"success": True})

    @app.post("/save_guard_input")
    def save_guard_input():
        date_value = require_param("date")
        added = append_guard_entries(get_journal().guard_inputs, date_value, param_list("content"))
        app.logger.info("Appended %s guard entries for %s", added, date_value)
        return jsonify({"success": True, "added": added})

    @app.get("/weekly_guard_inputs")
    def weekly_guard_inputs():
        items = aggregate_guard_entries(
            get_journal().guard_inputs,
            require_param("start"),
            require_param("end"),
        )
        return jsonify({"success": True, "items": items})

    @app.get("/get_images")
    def get_images():
        return jsonify(get_media().list_images(require_param("date")))

    @app.post("/upload")
    def upload_image():
        filename = get_media().save_image(request.files.get("image"), param("date"))
        app.logger.info("Uploaded image %s", filename)
        return jsonify({"success": True, "filename": filename})

    @app.delete("/deletefile")
    def delete_file():
        filename = get_media().delete_image(require_param("filename"))
        app.logger.info("Deleted image %s", filename)
        return jsonify({"success": True, "filename": filename})

    @app.get("/image/<path:filename>")
    def serve_image(filename):
        path = get_media().image_path(filename)
        return send_from_directory(path.parent, path.name)

    try:
        init_storage()
    except StorageError:
        pass

    app.get_journal = get_journal
    app.get_media = get_media
    app.init_storage = init_storage
    return app
