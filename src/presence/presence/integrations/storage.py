"""Photo evidence storage."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageOps, UnidentifiedImageError
from werkzeug.utils import secure_filename

from ..core.constants import EVIDENCE_DIRECTORY

logger = logging.getLogger(__name__)


class EvidenceUploadError(Exception):
    """Raised when evidence cannot be decoded or stored."""


class EvidenceStore(Protocol):
    def upload(self, content: bytes, key: str) -> str:
        """Store the image and return an opaque reference."""

        raise NotImplementedError


def compress_image(content: bytes, *, max_side: int = 1280, quality: int = 70) -> bytes:
    """Re-encode an uploaded photo as a bounded-size JPEG."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            img.thumbnail((max_side, max_side))
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=int(quality), optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise EvidenceUploadError(f"Unreadable image: {exc}") from exc
    return out.getvalue()


class LocalEvidenceStore:
    def __init__(self, root_dir: str | Path, *, directory: str = EVIDENCE_DIRECTORY, max_side: int = 1280, quality: int = 70):
        self._root = Path(root_dir)
        self._directory = directory
        self._max_side = int(max_side)
        self._quality = int(quality)

    def upload(self, content: bytes, key: str) -> str:
        data = compress_image(content, max_side=self._max_side, quality=self._quality)
        name = secure_filename(f"{key}.jpg")
        if not name:
            raise EvidenceUploadError(f"Invalid evidence key {key!r}")
        ref = f"{self._directory}/{name}"
        path = self._root / ref
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise EvidenceUploadError(f"Could not write {path}: {exc}") from exc
        logger.debug("Stored evidence %s (%d bytes)", ref, len(data))
        return ref
