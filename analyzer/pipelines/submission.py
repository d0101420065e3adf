"""Turn the draft into an inference request and archive successful results."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from analyzer.pipelines.inference import ContentBlock, InferenceResult, InferenceTransport
from analyzer.services.history_service import HistoryStore, Submission
from analyzer.session.draft import Draft

logger = logging.getLogger(__name__)

CredentialSource = Callable[[], Optional[str]]
CommitListener = Callable[[Submission], None]


class Precondition(str, Enum):
    """Reasons a submission is refused before any request is made."""

    MISSING_CREDENTIAL = "missing_credential"
    NO_IMAGES = "no_images"
    EMPTY_PROMPT = "empty_prompt"
    BUSY = "busy"
    VIEWING_HISTORY = "viewing_history"


PRECONDITION_MESSAGES = {
    Precondition.MISSING_CREDENTIAL: "请先填写 API Key。",
    Precondition.NO_IMAGES: "请至少上传一张截图。",
    Precondition.EMPTY_PROMPT: "分析提示词不能为空。",
    Precondition.BUSY: "正在分析中，请等待当前请求完成。",
    Precondition.VIEWING_HISTORY: "正在查看历史记录，请先点击“新建分析”。",
}


@dataclass(slots=True, frozen=True)
class PreconditionFailure:
    reason: Precondition

    @property
    def message(self) -> str:
        return PRECONDITION_MESSAGES[self.reason]


@dataclass(slots=True)
class SubmissionRequest:
    """Payload for one inference call: prompt block followed by image blocks."""

    credential: str
    blocks: List[ContentBlock]


@dataclass(slots=True)
class AnalysisOutcome:
    """What the caller shows after ``submit``."""

    submission: Optional[Submission] = None
    error: Optional[str] = None
    refused: Optional[PreconditionFailure] = None

    @property
    def ok(self) -> bool:
        return self.submission is not None

    @property
    def message(self) -> str:
        if self.refused is not None:
            return self.refused.message
        if self.error is not None:
            return f"分析失败：{self.error}"
        return "分析完成"


class SubmissionBuilder:
    """Validates the draft, runs at most one request, and commits successes."""

    def __init__(
        self,
        draft: Draft,
        history: HistoryStore,
        transport: InferenceTransport,
        credential_source: CredentialSource,
    ) -> None:
        self.draft = draft
        self.history = history
        self.transport = transport
        self.credential_source = credential_source
        self.in_flight = False
        self._listeners: List[CommitListener] = []

    def add_commit_listener(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    def check(self) -> Optional[PreconditionFailure]:
        """Return the first failed precondition, or None when ready to submit."""
        if self.in_flight:
            return PreconditionFailure(Precondition.BUSY)
        if not (self.credential_source() or "").strip():
            return PreconditionFailure(Precondition.MISSING_CREDENTIAL)
        if not self.draft.images:
            return PreconditionFailure(Precondition.NO_IMAGES)
        if not self.draft.prompt_text.strip():
            return PreconditionFailure(Precondition.EMPTY_PROMPT)
        return None

    def build(self) -> Union[SubmissionRequest, PreconditionFailure]:
        failure = self.check()
        if failure is not None:
            return failure
        blocks: List[ContentBlock] = [{"type": "text", "text": self.draft.prompt_text}]
        for item in self.draft.images:
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": item.mime_type,
                        "data": base64.b64encode(item.payload).decode("ascii"),
                    },
                }
            )
        credential = (self.credential_source() or "").strip()
        return SubmissionRequest(credential=credential, blocks=blocks)

    def submit(self) -> AnalysisOutcome:
        """Build, call the transport, and commit on success. The draft is kept on failure."""
        request = self.build()
        if isinstance(request, PreconditionFailure):
            logger.info("Submission refused: %s", request.reason.value)
            return AnalysisOutcome(refused=request)

        self.in_flight = True
        try:
            result: InferenceResult = self.transport.infer(request.credential, request.blocks)
        finally:
            self.in_flight = False

        if not result.ok:
            return AnalysisOutcome(error=result.error or "Failed to analyze screenshots")
        return AnalysisOutcome(submission=self.commit(result.analysis or ""))

    def commit(self, analysis_text: str) -> Submission:
        """Snapshot the draft into a new Submission at the front of history."""
        submission = Submission(
            images=self.draft.snapshot_images(),
            prompt_text=self.draft.prompt_text,
            analysis_text=analysis_text,
            project=self.draft.project,
            tags=tuple(self.draft.tags),
        )
        self.history.insert_front(submission)
        logger.info(
            "Archived submission %s with %d screenshot(s)", submission.id, len(submission.images)
        )
        for listener in self._listeners:
            listener(submission)
        return submission
