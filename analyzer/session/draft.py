"""The in-progress composition that has not been submitted yet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from analyzer.services.history_service import SubmittedImage
from analyzer.session.image_set import ImageSet


def parse_tags(raw: str | Iterable[str] | None) -> List[str]:
    """Split a comma separated string (or iterable) into unique, trimmed tags."""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    tags: List[str] = []
    for part in parts:
        tag = str(part).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


@dataclass
class Draft:
    """Mutable draft. Converted to a Submission only through ``snapshot_images``."""

    images: ImageSet = field(default_factory=ImageSet)
    prompt_text: str = ""
    project: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def set_project(self, project: Optional[str]) -> None:
        self.project = (project or "").strip() or None

    def set_tags(self, raw: str | Iterable[str] | None) -> None:
        self.tags = parse_tags(raw)

    def snapshot_images(self) -> Tuple[SubmittedImage, ...]:
        """Copy the current images by value, in their current order."""
        return tuple(
            SubmittedImage(
                display_name=item.display_name,
                payload=bytes(item.payload),
                mime_type=item.mime_type,
            )
            for item in self.images
        )

    def reset(self, prompt_text: str = "") -> None:
        self.images.clear()
        self.prompt_text = prompt_text
        self.project = None
        self.tags = []
