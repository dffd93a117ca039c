import logging
import os
import re
import time
from datetime import date
from pathlib import Path

from werkzeug.utils import secure_filename

from .errors import MediaNotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")
DEFAULT_IMAGE_EXTENSION = ".png"
SAFE_IMAGE_NAME = re.compile(r"^[\w\-.]+\.(png|jpe?g|gif|webp)$", re.IGNORECASE | re.ASCII)
DATE_PREFIX = re.compile(r"^\d{8}$")


def is_image_name(name):
    return os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS


def is_safe_image_name(name):
    return bool(name) and SAFE_IMAGE_NAME.match(name) is not None


def date_prefix(value):
    prefix = (value or "").strip().replace("-", "")
    if not prefix:
        raise ValidationError("Missing date parameter (YYYYMMDD)")
    if not DATE_PREFIX.match(prefix):
        raise ValidationError(f"Invalid date {value!r}, expected YYYYMMDD such as 20250506")
    return prefix


def upload_extension(filename):
    ext = os.path.splitext(secure_filename(filename or ""))[1].lower()
    if not ext:
        return DEFAULT_IMAGE_EXTENSION
    if ext not in IMAGE_EXTENSIONS:
        raise ValidationError(f"Unsupported image type {ext!r}")
    return ext


class MediaDirectory:
    def __init__(self, root):
        self.root = Path(root)

    def list_images(self, date_value):
        prefix = date_prefix(date_value)
        if not self.root.is_dir():
            return []
        try:
            names = os.listdir(self.root)
        except OSError as exc:
            raise StorageError(f"Unable to list {self.root}: {exc}") from exc
        return sorted(name for name in names if name.startswith(prefix) and is_image_name(name))

    def save_image(self, upload, date_value=None, now_ms=None):
        if upload is None or not getattr(upload, "filename", None):
            raise ValidationError("Missing image upload")
        prefix = date_prefix(date_value or date.today().isoformat())
        ext = upload_extension(upload.filename)
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            target = self.root / f"{prefix}_{stamp}{ext}"
            while target.exists():
                stamp += 1
                target = self.root / f"{prefix}_{stamp}{ext}"
            upload.save(str(target))
        except OSError as exc:
            raise StorageError(f"Unable to store upload in {self.root}: {exc}") from exc
        logger.debug("Stored image %s", target.name)
        return target.name

    def image_path(self, name):
        if not is_safe_image_name(name):
            raise ValidationError(f"Invalid file name {name!r}")
        path = self.root / name
        if not path.is_file():
            raise MediaNotFoundError(name)
        return path

    def delete_image(self, name):
        path = self.image_path(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise MediaNotFoundError(name) from exc
        except OSError as exc:
            raise StorageError(f"Unable to delete {path}: {exc}") from exc
        return name
