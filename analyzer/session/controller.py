"""Session state: composing a new draft or browsing archived submissions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Sequence, Union

from analyzer.pipelines.inference import InferenceTransport
from analyzer.pipelines.submission import (
    AnalysisOutcome,
    CredentialSource,
    Precondition,
    PreconditionFailure,
    SubmissionBuilder,
)
from analyzer.prompts.prompt_library import PromptLibrary
from analyzer.services.history_query import HistoryFilter, HistoryQuery
from analyzer.services.history_service import HistoryStore, Submission, SubmittedImage
from analyzer.session.draft import Draft
from analyzer.session.image_set import ImageItem

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    COMPOSING = "composing"
    VIEWING_HISTORY = "viewing_history"


class SessionController:
    """Owns the draft, the history views and the cursor through filtered history.

    ``cursor`` indexes the filtered view and is only set while viewing
    history; it is always a valid index into ``filtered()`` in that mode.
    """

    def __init__(
        self,
        history: HistoryStore,
        library: PromptLibrary,
        transport: InferenceTransport,
        credential_source: CredentialSource,
    ) -> None:
        self.history = history
        self.library = library
        self.query = HistoryQuery(history)
        self.draft = Draft(prompt_text=library.saved_prompt())
        self.builder = SubmissionBuilder(self.draft, history, transport, credential_source)
        self.builder.add_commit_listener(self.commit_submission)

        self.mode = SessionMode.COMPOSING
        self.cursor: Optional[int] = None
        self.criteria = HistoryFilter()
        self.viewed: Optional[Submission] = None
        self.active_id: Optional[str] = None
        self.result_text: Optional[str] = None

    # Views ---------------------------------------------------------------------
    @property
    def viewing_history(self) -> bool:
        return self.mode is SessionMode.VIEWING_HISTORY

    def filtered(self) -> List[Submission]:
        return self.query.apply(self.criteria)

    def displayed_images(self) -> Sequence[Union[ImageItem, SubmittedImage]]:
        """Archived placeholders while viewing history, otherwise the live images."""
        if self.viewed is not None:
            return self.viewed.images
        return self.draft.images.items()

    def position_label(self) -> str:
        if self.cursor is None:
            return ""
        return f"{self.cursor + 1} / {len(self.filtered())}"

    # Transitions ---------------------------------------------------------------
    def analyze(self) -> AnalysisOutcome:
        """Submit the draft. Refused while an archived entry is displayed."""
        if self.viewing_history:
            return AnalysisOutcome(refused=PreconditionFailure(Precondition.VIEWING_HISTORY))
        outcome = self.builder.submit()
        if not outcome.ok and outcome.error is not None:
            self.result_text = None
        return outcome

    def load_from_history(self, filtered_index: int) -> bool:
        """Display the archived entry at ``filtered_index``; no request is made."""
        view = self.filtered()
        if not 0 <= filtered_index < len(view):
            return False
        entry = view[filtered_index]
        self.mode = SessionMode.VIEWING_HISTORY
        self.cursor = filtered_index
        self.viewed = entry
        self.draft.reset(entry.prompt_text)
        self.draft.set_project(entry.project)
        self.draft.set_tags(entry.tags)
        self.result_text = entry.analysis_text
        return True

    def navigate(self, step: int) -> bool:
        """Move the cursor by ``step``; out-of-range moves are ignored."""
        if not self.viewing_history or self.cursor is None:
            return False
        target = self.cursor + step
        if not 0 <= target < len(self.filtered()):
            return False
        return self.load_from_history(target)

    def start_new(self) -> None:
        self.mode = SessionMode.COMPOSING
        self.cursor = None
        self.viewed = None
        self.result_text = None
        self.draft.reset(self.library.saved_prompt())

    def commit_submission(self, submission: Submission) -> None:
        """Called by the builder after a successful round trip."""
        self.mode = SessionMode.COMPOSING
        self.cursor = None
        self.viewed = None
        self.active_id = submission.id
        self.result_text = submission.analysis_text

    def delete_entry(self, submission_id: str) -> bool:
        found = self.history.delete_by_id(submission_id)
        if not found:
            return False
        if self.active_id == submission_id:
            self.active_id = None
        if self.viewed is not None and self.viewed.id == submission_id:
            logger.info("Viewed submission %s deleted, starting a new analysis", submission_id)
            self.start_new()
        else:
            self._sync_cursor()
        return True

    def clear_history(self) -> None:
        self.history.clear()
        self.active_id = None
        if self.viewing_history:
            self.start_new()

    def set_filter(self, search_text: Optional[str] = None, project: Optional[str] = None) -> None:
        self.criteria = HistoryFilter(
            search_text=(search_text or "").strip() or None,
            project=(project or "").strip() or None,
        )
        self._sync_cursor()

    # Internal helpers ---------------------------------------------------------
    def _sync_cursor(self) -> None:
        """Keep the cursor valid after the filtered view changed."""
        if not self.viewing_history or self.viewed is None:
            return
        view = self.filtered()
        if not view:
            self.start_new()
            return
        for index, entry in enumerate(view):
            if entry.id == self.viewed.id:
                self.cursor = index
                return
        clamped = min(self.cursor or 0, len(view) - 1)
        self.load_from_history(clamped)
