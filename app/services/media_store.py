"""
Filesystem storage for downloaded attachments.

Files live flat under one media root; the filename is the only reference
persisted on the message row.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import time
from pathlib import Path
from typing import Optional

from app.channels.envelope import MediaRef
from app.exceptions import InvalidMediaReference, MediaFileMissing

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".bin"
DEFAULT_MIMETYPE = "application/octet-stream"

MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/aac": ".aac",
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9-]")
_MAX_NAME_ATTEMPTS = 100


def extension_for(mime_type: Optional[str]) -> str:
    """File extension for a MIME type ('audio/ogg; codecs=opus' -> '.ogg'), '.bin' if unknown."""
    if not mime_type:
        return DEFAULT_EXTENSION
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_EXTENSIONS.get(base) or mimetypes.guess_extension(base) or DEFAULT_EXTENSION


def mimetype_for(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    for mime, known_ext in MIME_EXTENSIONS.items():
        if known_ext == ext:
            return mime
    return mimetypes.guess_type(filename)[0] or DEFAULT_MIMETYPE


def _suffix_from_message_id(message_id: str) -> str:
    # Client ids look like 'false_5551234@c.us_3EB0C0FFEE'; the third part is the unique key.
    parts = message_id.split("_")
    raw = parts[2] if len(parts) > 2 and parts[2] else "unknown"
    return _UNSAFE_CHARS.sub("", raw) or "unknown"


class MediaStore:
    """Write-once attachment files under a single root."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir).resolve()

    def build_filename(self, kind: str, message_id: str, mime_type: Optional[str]) -> str:
        stamp = int(time.time() * 1000)
        return f"{kind}_{stamp}_{_suffix_from_message_id(message_id)}{extension_for(mime_type)}"

    def store(
        self,
        raw_bytes: bytes,
        mime_type: Optional[str],
        kind: str,
        message_id: str,
    ) -> MediaRef:
        """Persist attachment bytes and return the reference to save on the message."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        filename = self.build_filename(kind, message_id, mime_type)
        stem, ext = Path(filename).stem, Path(filename).suffix
        for attempt in range(_MAX_NAME_ATTEMPTS):
            candidate = filename if attempt == 0 else f"{stem}-{attempt}{ext}"
            try:
                with open(self.base_dir / candidate, "xb") as fh:
                    fh.write(raw_bytes)
            except FileExistsError:
                continue
            logger.info("Media saved: %s (%d bytes)", candidate, len(raw_bytes))
            return MediaRef(
                filename=candidate,
                size=len(raw_bytes),
                mimetype=mime_type,
            )
        raise FileExistsError(f"No free media filename for {filename}")

    def path_for(self, filename: str) -> Path:
        """Absolute path of a stored file; rejects anything outside the media root."""
        if not filename or "\x00" in filename:
            raise InvalidMediaReference("Invalid filename")
        path = (self.base_dir / filename).resolve()
        if self.base_dir not in path.parents:
            raise InvalidMediaReference(f"Filename escapes media root: {filename!r}")
        if not path.is_file():
            raise MediaFileMissing(f"Media file not found: {filename!r}")
        return path

    def resolve(self, filename: str) -> bytes:
        return self.path_for(filename).read_bytes()

    def discard(self, filename: str) -> bool:
        """Remove a stored file that no message references. Returns False if already gone."""
        try:
            path = self.path_for(filename)
        except MediaFileMissing:
            return False
        path.unlink()
        logger.info("Media discarded: %s", filename)
        return True
