"""Analysis prompt templates: fixed built-ins plus user-saved prompts."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from analyzer.services.storage_service import StorageError, StorageService

logger = logging.getLogger(__name__)

CUSTOM_PROMPTS_KEY = "prompts"
WORKING_PROMPT_KEY = "analyzer_prompt"


@dataclass(slots=True, frozen=True)
class PromptTemplate:
    """Read-only template shipped with the application."""

    id: str
    name: str
    description: str
    text: str


@dataclass(slots=True, frozen=True)
class CustomPrompt:
    """Prompt saved by the user."""

    id: str
    name: str
    text: str
    created_at: float


BUILTIN_TEMPLATES: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        id="default",
        name="Default Analysis",
        description="Comprehensive UI/UX flow analysis",
        text="""Analyze these UI screenshots in sequence. For each screenshot, provide:
1. A brief, objective description of what's shown (UI elements, layout, content)
2. The apparent purpose or function of this screen
3. Any notable UI/UX patterns or components used

After analyzing individual screens, provide an overall flow analysis that describes:
- The user journey or workflow represented
- How the screens connect or relate to each other
- The overall purpose of this application or feature set

Be descriptive and objective, focusing on what is visible rather than making subjective judgments about quality.""",
    ),
    PromptTemplate(
        id="accessibility",
        name="Accessibility Review",
        description="Focus on accessibility aspects",
        text="""Analyze these UI screenshots for accessibility considerations. For each screenshot, identify:
1. Text contrast and readability issues
2. Touch target sizes and spacing
3. Visual hierarchy and focus indicators
4. Potential screen reader challenges
5. Color-only information indicators

Provide recommendations for improving accessibility based on WCAG guidelines.""",
    ),
    PromptTemplate(
        id="mobile-ux",
        name="Mobile UX Analysis",
        description="Mobile-specific UX evaluation",
        text="""Analyze these mobile app screenshots focusing on:
1. Touch-friendly interface elements
2. Thumb reachability for key actions
3. Information density and scrolling patterns
4. Mobile-specific interaction patterns (swipe, pinch, etc.)
5. Loading states and offline considerations

Evaluate the mobile user experience and suggest optimizations.""",
    ),
    PromptTemplate(
        id="onboarding",
        name="Onboarding Flow",
        description="First-time user experience analysis",
        text="""Analyze this onboarding flow for new users. Evaluate:
1. Clarity of value proposition
2. Progressive disclosure of information
3. Friction points in the signup/setup process
4. Educational elements and tooltips
5. Time to first value

Assess how effectively the flow converts and engages new users.""",
    ),
    PromptTemplate(
        id="conversion",
        name="Conversion Optimization",
        description="Focus on conversion rate optimization",
        text="""Analyze these screenshots for conversion optimization. Identify:
1. Clear calls-to-action and their prominence
2. Trust signals and social proof
3. Form design and field optimization
4. Error handling and validation
5. Checkout/purchase flow friction points

Suggest improvements to increase conversion rates.""",
    ),
    PromptTemplate(
        id="design-system",
        name="Design System Audit",
        description="Consistency and component usage",
        text="""Audit these screenshots for design system compliance:
1. Consistent use of colors, typography, and spacing
2. Component variations and their appropriate usage
3. Icon consistency and meaning
4. Button styles and hierarchy
5. Form element consistency

Identify deviations from design system patterns and suggest improvements.""",
    ),
)


class PromptLibrary:
    """Built-in templates and the user's own prompts.

    Custom prompt names are not required to be unique: saving twice under the
    same name keeps both entries, each with its own id.
    """

    def __init__(self, storage: Optional[StorageService] = None) -> None:
        self._storage = storage
        self._builtins: Dict[str, PromptTemplate] = {t.id: t for t in BUILTIN_TEMPLATES}
        self._custom: List[CustomPrompt] = []
        self._load()

    def list_builtins(self) -> List[PromptTemplate]:
        """Return the built-in templates in their fixed order."""
        return list(BUILTIN_TEMPLATES)

    def list_custom(self) -> List[CustomPrompt]:
        """Return the user's prompts in insertion order."""
        return list(self._custom)

    def is_builtin(self, prompt_id: str) -> bool:
        return prompt_id in self._builtins

    def get_text(self, prompt_id: str) -> Optional[str]:
        """Resolve a built-in or custom id to its prompt text."""
        builtin = self._builtins.get(prompt_id)
        if builtin is not None:
            return builtin.text
        for prompt in self._custom:
            if prompt.id == prompt_id:
                return prompt.text
        return None

    def save(self, name: str, text: str) -> CustomPrompt:
        """Store a new custom prompt under a fresh id."""
        prompt = CustomPrompt(
            id=uuid.uuid4().hex,
            name=name.strip() or "Untitled prompt",
            text=text,
            created_at=time.time(),
        )
        self._custom.append(prompt)
        self._persist()
        return prompt

    def delete(self, prompt_id: str) -> bool:
        """Remove a custom prompt. Built-in ids are refused."""
        if self.is_builtin(prompt_id):
            return False
        for index, prompt in enumerate(self._custom):
            if prompt.id == prompt_id:
                del self._custom[index]
                self._persist()
                return True
        return False

    def default_text(self) -> str:
        """Text of the first built-in template."""
        return BUILTIN_TEMPLATES[0].text

    # Working prompt ------------------------------------------------------------
    def saved_prompt(self) -> str:
        """Return the last saved working prompt, or the default text."""
        if self._storage is None:
            return self.default_text()
        data = self._storage.load_json(WORKING_PROMPT_KEY, default=None)
        if isinstance(data, dict) and isinstance(data.get("prompt"), str) and data["prompt"]:
            return data["prompt"]
        return self.default_text()

    def remember_prompt(self, text: str) -> bool:
        """Persist the working prompt; False when storage is unavailable."""
        if self._storage is None:
            return False
        try:
            self._storage.save_json(WORKING_PROMPT_KEY, {"prompt": text})
        except StorageError as exc:
            logger.warning("Working prompt not saved: %s", exc)
            return False
        return True

    def reset_prompt(self) -> str:
        """Reset the working prompt to the default and return it."""
        text = self.default_text()
        self.remember_prompt(text)
        return text

    # Internal helpers ---------------------------------------------------------
    def _load(self) -> None:
        if self._storage is None:
            return
        data = self._storage.load_json(CUSTOM_PROMPTS_KEY, default=[])
        if not isinstance(data, list):
            logger.warning("Custom prompt store is not a list; starting empty")
            return
        for entry in data:
            try:
                self._custom.append(
                    CustomPrompt(
                        id=str(entry["id"]),
                        name=str(entry.get("name", "")),
                        text=str(entry["text"]),
                        created_at=float(entry.get("created_at", 0.0)),
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed custom prompt: %s", exc)

    def _persist(self) -> None:
        if self._storage is None:
            return
        try:
            self._storage.save_json(CUSTOM_PROMPTS_KEY, [asdict(p) for p in self._custom])
        except StorageError as exc:
            logger.warning("Custom prompts kept in memory only: %s", exc)
