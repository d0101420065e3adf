"""Utility helpers for reading uploads and previewing stored screenshots."""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from analyzer.session.image_set import ImageBlob

logger = logging.getLogger(__name__)


def upload_path(upload: Any) -> Path:
    """Resolve a Gradio upload (path string or tempfile wrapper) to a filesystem path."""
    if isinstance(upload, (str, Path)):
        return Path(upload)
    name = getattr(upload, "name", None) or getattr(upload, "path", None)
    if not name:
        raise ValueError(f"Unsupported upload object: {upload!r}")
    return Path(name)


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def read_blob(upload: Any) -> ImageBlob:
    """Read an uploaded file into memory."""
    path = upload_path(upload)
    return ImageBlob(name=path.name, payload=path.read_bytes(), mime_type=guess_mime_type(path))


async def read_blob_async(upload: Any) -> ImageBlob:
    """Read an uploaded file off the event loop thread."""
    return await asyncio.to_thread(read_blob, upload)


def generate_thumbnail(payload: bytes, max_size: Tuple[int, int] = (512, 512)) -> Optional[Image.Image]:
    """Open stored bytes for display in the gallery; None when they are not an image."""
    try:
        with Image.open(io.BytesIO(payload)) as image:
            preview = image.copy()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Cannot preview image: %s", exc)
        return None
    preview.thumbnail(max_size)
    return preview
