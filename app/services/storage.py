from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationError

log = logging.getLogger(__name__)

# Public mount point of settings.upload_dir
UPLOAD_MOUNT = "/uploads"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True)
class PendingImage:
    filename: str
    data: bytes


class LocalImageStore:
    """
    Property images on local disk, addressed by their public path
    (``/uploads/properties/<name>``).
    """

    def __init__(self, base_dir: str, url_prefix: str, *, max_file_size: int, max_files: int):
        self.base = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_file_size = max_file_size
        self.max_files = max_files

        subdir = self.url_prefix[len(UPLOAD_MOUNT):].strip("/") if self.url_prefix.startswith(UPLOAD_MOUNT) else ""
        self.dir = self.base / subdir if subdir else self.base
        self.dir.mkdir(parents=True, exist_ok=True)

    def _unique_name(self, original: str) -> str:
        p = PurePosixPath(original or "image")
        stem = _UNSAFE_CHARS.sub("-", p.stem).strip("-")[:50] or "image"
        ext = p.suffix.lower() if re.fullmatch(r"\.[A-Za-z0-9]{1,10}", p.suffix or "") else ""
        return f"{stem}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"

    async def read_uploads(self, uploads: list[UploadFile]) -> list[PendingImage]:
        """Validate count, type and size of every upload before anything is written."""
        if len(uploads) > self.max_files:
            raise ValidationError(f"Too many files. Maximum {self.max_files} files allowed.")

        pending = []
        for upload in uploads:
            content_type = (upload.content_type or "").lower()
            if not content_type.startswith("image/"):
                raise ValidationError("Invalid file type. Only image files are allowed.")
            data = await upload.read(self.max_file_size + 1)
            if len(data) > self.max_file_size:
                mb = self.max_file_size // (1024 * 1024)
                raise ValidationError(f"File too large. Maximum size is {mb}MB per file.")
            pending.append(PendingImage(filename=upload.filename or "image", data=data))
        return pending

    def put(self, image: PendingImage) -> str:
        name = self._unique_name(image.filename)
        (self.dir / name).write_bytes(image.data)
        return f"{self.url_prefix}/{name}"

    def put_all(self, images: list[PendingImage]) -> list[str]:
        return [self.put(img) for img in images]

    def resolve_path(self, public_path: str) -> Path | None:
        """Filesystem path for a stored image; None for URLs we don't own."""
        if not public_path.startswith(self.url_prefix + "/"):
            return None
        name = public_path[len(self.url_prefix) + 1:]
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return None
        return self.dir / name

    def delete(self, public_path: str) -> bool:
        path = self.resolve_path(public_path)
        if path is None or not path.exists():
            return False
        try:
            path.unlink()
        except OSError:
            log.exception("failed to delete image file: %s", path)
            return False
        return True

    def delete_all(self, public_paths: list[str]) -> None:
        for p in public_paths:
            self.delete(p)


def get_image_store() -> LocalImageStore:
    return LocalImageStore(
        settings.upload_dir,
        settings.upload_url_prefix,
        max_file_size=settings.max_file_size,
        max_files=settings.max_files,
    )
