"""Read-only search and facet views over the analysis history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from analyzer.services.history_service import HistoryStore, Submission


@dataclass(slots=True, frozen=True)
class HistoryFilter:
    """Search criteria; empty values mean "no constraint"."""

    search_text: Optional[str] = None
    project: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.search_text or self.project)


def matches(entry: Submission, criteria: HistoryFilter) -> bool:
    """Return True when ``entry`` satisfies every active criterion."""
    if criteria.project and entry.project != criteria.project:
        return False
    needle = (criteria.search_text or "").strip().lower()
    if not needle:
        return True
    haystacks = [entry.analysis_text, entry.project or "", *entry.tags]
    return any(needle in text.lower() for text in haystacks)


class HistoryQuery:
    """Derives views from the live store on every call; nothing is cached."""

    def __init__(self, store: HistoryStore) -> None:
        self.store = store

    def filter(
        self,
        search_text: Optional[str] = None,
        project: Optional[str] = None,
    ) -> List[Submission]:
        criteria = HistoryFilter(search_text=search_text, project=project)
        return self.apply(criteria)

    def apply(self, criteria: HistoryFilter) -> List[Submission]:
        return [entry for entry in self.store.entries() if matches(entry, criteria)]

    def distinct_projects(self) -> List[str]:
        """Non-empty project names in first-seen order."""
        seen: List[str] = []
        for entry in self.store.entries():
            if entry.project and entry.project not in seen:
                seen.append(entry.project)
        return seen

    def distinct_tags(self) -> List[str]:
        """All tags across history, deduplicated, first-seen order."""
        seen: List[str] = []
        for entry in self.store.entries():
            for tag in entry.tags:
                if tag not in seen:
                    seen.append(tag)
        return seen
