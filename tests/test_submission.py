"""SubmissionBuilder unit tests."""

from __future__ import annotations

import base64
from typing import Optional

import pytest

from analyzer.pipelines.inference import InferenceResult
from analyzer.pipelines.submission import Precondition, PreconditionFailure, SubmissionBuilder, SubmissionRequest
from analyzer.services.history_service import HistoryStore
from analyzer.session.draft import Draft
from analyzer.session.image_set import ImageBlob


class DummyTransport:
    """Stub transport recording every call."""

    def __init__(self, analysis: Optional[str] = "flow description", error: Optional[str] = None) -> None:
        self.analysis = analysis
        self.error = error
        self.calls: list[tuple[str, list]] = []

    def infer(self, credential, blocks):
        self.calls.append((credential, blocks))
        if self.error:
            return InferenceResult(error=self.error)
        return InferenceResult(analysis=self.analysis)


def blob(name: str) -> ImageBlob:
    return ImageBlob(name=name, payload=name.encode(), mime_type="image/png")


def build(
    *,
    credential: Optional[str] = "sk-test",
    prompt: str = "Describe these screens",
    names: tuple[str, ...] = ("a.png", "b.png", "c.png"),
    transport: Optional[DummyTransport] = None,
    history: Optional[HistoryStore] = None,
):
    draft = Draft(prompt_text=prompt)
    draft.images.attach(blob(name) for name in names)
    transport = transport or DummyTransport()
    history = history if history is not None else HistoryStore()
    builder = SubmissionBuilder(draft, history, transport, lambda: credential)
    return builder, draft, transport, history


@pytest.mark.parametrize(
    ("kwargs", "reason"),
    [
        ({"credential": None}, Precondition.MISSING_CREDENTIAL),
        ({"credential": "  "}, Precondition.MISSING_CREDENTIAL),
        ({"names": ()}, Precondition.NO_IMAGES),
        ({"prompt": ""}, Precondition.EMPTY_PROMPT),
        ({"prompt": "   \n"}, Precondition.EMPTY_PROMPT),
    ],
)
def test_refused_without_calling_transport(kwargs, reason):
    builder, _, transport, history = build(**kwargs)

    built = builder.build()
    outcome = builder.submit()

    assert isinstance(built, PreconditionFailure)
    assert built.reason == reason
    assert outcome.refused is not None and outcome.refused.reason == reason
    assert outcome.message == built.message
    assert len(transport.calls) == 0
    assert history.size() == 0


def test_build_puts_prompt_first_then_images_in_current_order():
    builder, draft, _, _ = build()
    a, b, c = draft.images.items()
    draft.images.reorder(c.id, 0)

    request = builder.build()

    assert isinstance(request, SubmissionRequest)
    assert request.credential == "sk-test"
    assert request.blocks[0] == {"type": "text", "text": "Describe these screens"}
    data = [base64.b64decode(block["source"]["data"]) for block in request.blocks[1:]]
    assert data == [b"c.png", b"a.png", b"b.png"]
    assert all(block["source"]["media_type"] == "image/png" for block in request.blocks[1:])


def test_reordered_submission_is_archived_in_that_order():
    builder, draft, transport, history = build()
    a, b, c = draft.images.items()
    draft.images.reorder(c.id, 0)

    outcome = builder.submit()

    assert outcome.ok
    assert len(transport.calls) == 1
    entry = history.get(0)
    assert [image.display_name for image in entry.images] == ["c.png", "a.png", "b.png"]
    assert entry.prompt_text == "Describe these screens"
    assert entry.analysis_text == "flow description"


def test_commit_snapshot_is_decoupled_from_draft():
    builder, draft, _, history = build()
    draft.set_project("Checkout")
    draft.set_tags("login, mobile")
    builder.submit()

    draft.images.clear()
    draft.images.attach([blob("z.png")])
    draft.prompt_text = "changed"
    draft.tags.append("later")

    entry = history.get(0)
    assert [image.display_name for image in entry.images] == ["a.png", "b.png", "c.png"]
    assert entry.prompt_text == "Describe these screens"
    assert entry.project == "Checkout"
    assert entry.tags == ("login", "mobile")


def test_transport_failure_keeps_draft_and_history():
    transport = DummyTransport(error="401: invalid x-api-key")
    builder, draft, _, history = build(transport=transport)
    before = draft.images.items()

    outcome = builder.submit()

    assert not outcome.ok
    assert outcome.error == "401: invalid x-api-key"
    assert "invalid x-api-key" in outcome.message
    assert history.size() == 0
    assert draft.images.items() == before
    assert draft.prompt_text == "Describe these screens"
    assert builder.in_flight is False

    transport.error = None
    assert builder.submit().ok
    assert history.size() == 1


def test_submit_at_capacity_evicts_oldest():
    history = HistoryStore(capacity=50)
    builder, _, _, _ = build(history=history)
    for _ in range(50):
        builder.submit()
    oldest = history.get(49)

    builder.submit()

    assert history.size() == 50
    assert history.find_by_id(oldest.id) is None


def test_busy_while_request_in_flight():
    builder, _, transport, _ = build()
    builder.in_flight = True

    outcome = builder.submit()

    assert outcome.refused is not None
    assert outcome.refused.reason == Precondition.BUSY
    assert transport.calls == []


def test_commit_notifies_listeners():
    builder, _, _, _ = build()
    seen = []
    builder.add_commit_listener(seen.append)

    outcome = builder.submit()

    assert seen == [outcome.submission]
