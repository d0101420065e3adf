"""Analysis history tracking."""

from __future__ import annotations

import base64
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from analyzer.services.storage_service import StorageError, StorageService

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"
DEFAULT_CAPACITY = 50


@dataclass(slots=True, frozen=True)
class SubmittedImage:
    """Copy of one screenshot taken when the submission completed."""

    display_name: str
    payload: bytes
    mime_type: str = "image/png"


@dataclass(slots=True, frozen=True)
class Submission:
    """Archived record of one completed analysis round trip."""

    images: Tuple[SubmittedImage, ...]
    prompt_text: str
    analysis_text: str
    project: Optional[str] = None
    tags: Tuple[str, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "images": [
                {
                    "name": image.display_name,
                    "mime_type": image.mime_type,
                    "data": base64.b64encode(image.payload).decode("ascii"),
                }
                for image in self.images
            ],
            "prompt": self.prompt_text,
            "analysis": self.analysis_text,
            "project": self.project,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submission":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        images = tuple(
            SubmittedImage(
                display_name=str(image.get("name", "")),
                payload=base64.b64decode(image.get("data", "")),
                mime_type=str(image.get("mime_type") or "image/png"),
            )
            for image in data.get("images", [])
        )
        return cls(
            id=str(data["id"]),
            timestamp=timestamp,
            images=images,
            prompt_text=str(data.get("prompt", "")),
            analysis_text=str(data.get("analysis", "")),
            project=data.get("project") or None,
            tags=tuple(str(tag) for tag in data.get("tags") or ()),
        )


class HistoryStore:
    """Newest-first history with a hard capacity, persisted after every mutation."""

    def __init__(
        self,
        storage: Optional[StorageService] = None,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be positive")
        self.capacity = capacity
        self._storage = storage
        self._entries: List[Submission] = []
        self._memory_only = storage is None
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def memory_only(self) -> bool:
        """True when nothing is being written to disk for this session."""
        return self._memory_only

    def size(self) -> int:
        return len(self._entries)

    def entries(self) -> List[Submission]:
        return list(self._entries)

    def get(self, index: int) -> Optional[Submission]:
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    def find_by_id(self, submission_id: str) -> Optional[Submission]:
        for entry in self._entries:
            if entry.id == submission_id:
                return entry
        return None

    def insert_front(self, submission: Submission) -> List[Submission]:
        """Insert at index 0 and return whatever capacity eviction dropped."""
        self._entries.insert(0, submission)
        evicted: List[Submission] = []
        while len(self._entries) > self.capacity:
            evicted.append(self._entries.pop(self._oldest_index()))
        for entry in evicted:
            logger.info("History full, evicted submission %s", entry.id)
        self._persist()
        return evicted

    def delete_by_id(self, submission_id: str) -> bool:
        """Remove the matching entry; returns False when no entry has that id."""
        for index, entry in enumerate(self._entries):
            if entry.id == submission_id:
                del self._entries[index]
                self._persist()
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()
        self._persist()

    # Internal helpers ---------------------------------------------------------
    def _oldest_index(self) -> int:
        # ties go to the entry inserted earliest, i.e. the one furthest back
        oldest = len(self._entries) - 1
        for index in range(len(self._entries) - 2, -1, -1):
            if self._entries[index].timestamp < self._entries[oldest].timestamp:
                oldest = index
        return oldest

    def _load(self) -> None:
        if self._storage is None:
            return
        data = self._storage.load_json(HISTORY_KEY, default=[])
        if not isinstance(data, list):
            logger.warning("History store is not a list; starting empty")
            return
        entries = self._decode(data)
        self._entries = entries[: self.capacity]

    def _decode(self, data: Iterable[Any]) -> List[Submission]:
        entries: List[Submission] = []
        for item in data:
            try:
                entries.append(Submission.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed history entry: %s", exc)
        return entries

    def _persist(self) -> None:
        if self._memory_only or self._storage is None:
            return
        try:
            self._storage.save_json(HISTORY_KEY, [entry.to_dict() for entry in self._entries])
        except StorageError as exc:
            self._memory_only = True
            logger.error("History persistence disabled for this session: %s", exc)
