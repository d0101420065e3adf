"""File storage helpers."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a persisted blob cannot be written."""


class StorageService:
    """Key-value storage where each key maps to one JSON file."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        """Return the serialized blob stored under ``key`` or None when absent or unreadable."""
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            return None

    def save(self, key: str, blob: str) -> None:
        """Persist ``blob`` atomically: write a temp file, then replace the target."""
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    fp.write(blob)
                    fp.flush()
                    os.fsync(fp.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def load_json(self, key: str, default: Any = None) -> Any:
        """Decode the JSON stored under ``key``; corrupt or absent data yields ``default``."""
        blob = self.load(key)
        if blob is None:
            return default
        try:
            return json.loads(blob)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt data for %s: %s", key, exc)
            return default

    def save_json(self, key: str, data: Any) -> None:
        self.save(key, json.dumps(data, ensure_ascii=False, indent=2))


class CredentialStore:
    """Persist the inference API key as ``{"apiKey": ...}`` in a JSON file."""

    def __init__(self, path: Path, fallback: Optional[str] = None) -> None:
        self.path = Path(path)
        self.fallback = fallback
        self._storage = StorageService(self.path.parent)
        self._key = self.path.stem

    def load_credential(self) -> Optional[str]:
        """Return the saved credential, the environment fallback, or None."""
        data = self._storage.load_json(self._key, default={})
        saved = data.get("apiKey") if isinstance(data, dict) else None
        if isinstance(saved, str) and saved.strip():
            return saved.strip()
        return self.fallback or None

    def save_credential(self, credential: str) -> bool:
        """Store the credential verbatim; returns False when the write fails."""
        try:
            self._storage.save_json(self._key, {"apiKey": credential})
        except StorageError as exc:
            logger.error("Error saving API key: %s", exc)
            return False
        return True
