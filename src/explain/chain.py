"""Explanation chain: ordered fallback of AI vision providers describing a visual diff."""

from __future__ import annotations

import base64
import json
import logging
import os
from pathlib import Path
from typing import Protocol, Union

from pydantic import ValidationError

from src.ai.client import AIClient, extract_json_string
from src.ai.gemini_client import GeminiClient
from src.ai.prompts.explanation import (
    EXPLANATION_INSTRUCTION,
    EXPLANATION_SYSTEM_PROMPT,
    build_explanation_images,
)
from src.models.config import ExplanationConfig
from src.models.visual import ChangeExplanation, ChangeItem

logger = logging.getLogger(__name__)

NO_DIFFERENCES_SENTINEL = "No significant visual differences described by AI."

Explanation = Union[ChangeExplanation, str]


class ExplanationProvider(Protocol):
    name: str

    @property
    def available(self) -> bool: ...

    def invoke(self, baseline_b64: str, current_b64: str, diff_b64: str) -> str: ...


class GeminiExplanationProvider:
    name = "gemini"

    def __init__(self, model: str = "gemini-2.5-pro"):
        self.model = model
        self._client: GeminiClient | None = None

    @property
    def available(self) -> bool:
        return bool(os.environ.get("GEMINI_API_KEY"))

    def invoke(self, baseline_b64: str, current_b64: str, diff_b64: str) -> str:
        if self._client is None:
            self._client = GeminiClient(model=self.model)
        return self._client.complete_with_images(
            EXPLANATION_SYSTEM_PROMPT,
            build_explanation_images(baseline_b64, current_b64, diff_b64),
            EXPLANATION_INSTRUCTION,
            temperature=0,
        )


class AnthropicExplanationProvider:
    name = "anthropic"

    def __init__(self, model: str = "claude-sonnet-4-5-20250929", max_tokens: int = 1500):
        self.model = model
        self.max_tokens = max_tokens
        self._client: AIClient | None = None

    @property
    def available(self) -> bool:
        return bool(os.environ.get("ANTHROPIC_API_KEY"))

    def invoke(self, baseline_b64: str, current_b64: str, diff_b64: str) -> str:
        if self._client is None:
            self._client = AIClient(model=self.model, max_tokens=self.max_tokens)
        return self._client.complete_with_images(
            EXPLANATION_SYSTEM_PROMPT,
            build_explanation_images(baseline_b64, current_b64, diff_b64),
            EXPLANATION_INSTRUCTION,
            max_tokens=self.max_tokens,
            temperature=0,
        )


def error_explanation(message: str) -> ChangeExplanation:
    """A single synthetic change entry standing in for a real explanation."""
    return ChangeExplanation(changes=[
        ChangeItem(location="Error", baseline_state="N/A", current_state="N/A", description=message),
    ])


def parse_explanation(text: str) -> Explanation:
    """Validate a provider response; anything off-contract comes back as the raw text."""
    extracted = extract_json_string(text)
    if extracted is None:
        logger.warning("AI response contained no JSON object, keeping raw text")
        return text
    try:
        data = json.loads(extracted)
    except json.JSONDecodeError as e:
        logger.warning("AI response JSON did not parse (%s), keeping raw text", e)
        return text

    if isinstance(data, dict) and not data.get("changes"):
        return NO_DIFFERENCES_SENTINEL
    try:
        return ChangeExplanation.model_validate_json(extracted)
    except ValidationError as e:
        logger.warning("AI response failed schema validation (%d error(s)), keeping raw text",
                       e.error_count())
        return text


def _read_b64(path: str | Path) -> str:
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


class ExplanationChain:
    """Invokes exactly one provider per call: the first one that is available."""

    def __init__(self, providers: list[ExplanationProvider], enabled: bool = True):
        self.providers = providers
        self.enabled = enabled

    @classmethod
    def from_config(cls, config: ExplanationConfig) -> "ExplanationChain":
        factories = {
            "gemini": lambda: GeminiExplanationProvider(model=config.gemini_model),
            "anthropic": lambda: AnthropicExplanationProvider(
                model=config.anthropic_model, max_tokens=config.max_tokens,
            ),
        }
        return cls([factories[name]() for name in config.providers], enabled=config.enabled)

    def select_provider(self) -> ExplanationProvider | None:
        if not self.enabled:
            return None
        for provider in self.providers:
            if provider.available:
                return provider
        return None

    def explain(
        self, baseline_path: str | Path, current_path: str | Path, diff_path: str | Path,
    ) -> Explanation:
        provider = self.select_provider()
        if provider is None:
            logger.info("AI explanation skipped: disabled or no provider API key configured")
            return error_explanation(
                "AI explanation is disabled or no provider API key is configured."
            )

        logger.info("Explaining visual diff with %s", provider.name)
        try:
            text = provider.invoke(
                _read_b64(baseline_path), _read_b64(current_path), _read_b64(diff_path),
            )
        except Exception as e:
            logger.error("%s vision analysis failed: %s", provider.name, e)
            return error_explanation(f"AI Analysis failed. {e}")

        return parse_explanation(text)
