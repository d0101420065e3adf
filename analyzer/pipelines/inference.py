"""Multimodal inference transport for screenshot analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests

from config.settings import DEFAULT_BASE_URL, DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_TIMEOUT, AppConfig

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

ContentBlock = Dict[str, Any]


@dataclass(slots=True)
class InferenceResult:
    """Either the analysis text or the reason the call failed."""

    analysis: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.analysis is not None


class InferenceTransport(Protocol):
    def infer(self, credential: str, blocks: List[ContentBlock]) -> InferenceResult:
        ...


class AnthropicTransport:
    """Send ordered content blocks to the Messages API with ``requests``."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        base_url = self.config.metadata.get("api_base_url") or DEFAULT_BASE_URL
        return f"{base_url.rstrip('/')}/messages"

    def _payload(self, blocks: List[ContentBlock]) -> Dict[str, Any]:
        return {
            "model": self.config.metadata.get("model", DEFAULT_MODEL),
            "max_tokens": int(self.config.metadata.get("max_tokens", DEFAULT_MAX_TOKENS)),
            "messages": [{"role": "user", "content": blocks}],
        }

    def infer(self, credential: str, blocks: List[ContentBlock]) -> InferenceResult:
        """Run one request; every failure comes back as ``InferenceResult.error``."""
        headers = {
            "x-api-key": credential,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        timeout = float(self.config.metadata.get("request_timeout", DEFAULT_TIMEOUT))
        try:
            response = self._session.post(
                self.endpoint,
                headers=headers,
                json=self._payload(blocks),
                timeout=timeout,
            )
        except requests.RequestException as exc:
            logger.error("Inference request failed: %s", exc)
            return InferenceResult(error=f"Failed to analyze screenshots: {exc}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = _error_message(data) or response.text[:500] or response.reason
            logger.error("Inference endpoint returned %s: %s", response.status_code, message)
            return InferenceResult(error=f"{response.status_code}: {message}")

        text = _extract_text(data)
        if text is None:
            logger.error("Unexpected inference response: %r", data)
            return InferenceResult(error="Malformed response from inference endpoint")
        return InferenceResult(analysis=text)


def _error_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or error.get("type")
    if isinstance(error, str):
        return error
    return None


def _extract_text(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    parts = []
    for block in data.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    if not parts:
        return None
    return "\n".join(parts)
