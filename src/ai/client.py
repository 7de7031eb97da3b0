"""Claude API client wrapper for visual change explanations."""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Optional

import anthropic

logger = logging.getLogger(__name__)

# Configurable debug directory; set by orchestrator at startup
_debug_dir: Path | None = None

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def set_debug_dir(path: Path) -> None:
    """Set the directory for dumping AI exchanges."""
    global _debug_dir
    _debug_dir = path
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    """Get or create the debug directory."""
    global _debug_dir
    if _debug_dir is None:
        _debug_dir = Path("./visual-report") / "debug"
    _debug_dir.mkdir(parents=True, exist_ok=True)
    return _debug_dir


def extract_json_string(text: str) -> Optional[str]:
    """Pull a JSON object out of a model response.

    A fenced code block wins; otherwise the whole trimmed response is used when it
    is object-shaped. Anything else yields None.
    """
    if not text:
        return None
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    trimmed = text.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed
    return None


def save_exchange_log(
    provider: str,
    call_number: int,
    system_prompt: str,
    user_message: str,
    response_text: str,
    error: str | None,
) -> None:
    """Save the full AI exchange (prompt + response) to a log file."""
    try:
        debug_dir = _get_debug_dir()
        ts = time.strftime("%Y%m%d_%H%M%S")
        log_file = debug_dir / f"{provider}_call_{ts}_{call_number:03d}.log"

        with open(log_file, "w", encoding="utf-8") as f:
            f.write(f"=== {provider.upper()} CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
            f.write(f"=== SYSTEM PROMPT ({len(system_prompt)} chars) ===\n")
            f.write(system_prompt)
            f.write(f"\n\n=== USER MESSAGE ({len(user_message)} chars) ===\n")
            f.write(user_message)
            f.write(f"\n\n=== RESPONSE ({len(response_text)} chars) ===\n")
            f.write(response_text if response_text else "(empty)")
            if error:
                f.write(f"\n\n=== ERROR ===\n{error}\n")

        logger.debug("AI exchange logged to %s", log_file)
    except Exception as log_err:
        logger.debug("Failed to save AI exchange log: %s", log_err)


def describe_images(images: list[tuple[str, str]], user_message: str) -> str:
    """Text rendering of a labelled-image message for the exchange log."""
    lines = [f"{label} [IMAGE ATTACHED]" for label, _ in images]
    lines.append(user_message)
    return "\n".join(lines)


class AIClient:
    """Wrapper around the Anthropic Claude API."""

    def __init__(self, model: str = "claude-sonnet-4-5-20250929", max_tokens: int = 1500):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Please set it before requesting explanations."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=300.0)
        self.model = model
        self.max_tokens = max_tokens
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete_with_images(
        self,
        system_prompt: str,
        images: list[tuple[str, str]],
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0,
        media_type: str = "image/png",
    ) -> str:
        """Send labelled base64 images followed by a final instruction; return the text response."""
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info(
            "Calling Claude with %d image(s) (call #%d, model=%s, max_tokens=%d)...",
            len(images), self._call_count, self.model, tokens,
        )

        content: list[dict] = []
        for label, data in images:
            content.append({"type": "text", "text": label})
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            })
        content.append({"type": "text", "text": user_message})
        logged_message = describe_images(images, user_message)

        try:
            call_start = time.time()
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": content}],
            )
            call_duration = time.time() - call_start
            text = response.content[0].text
            logger.info("Claude response received in %.1fs (%d chars)",
                        call_duration, len(text))

            if response.stop_reason == "max_tokens":
                logger.warning(
                    "Claude response was truncated at max_tokens (%d); JSON may be incomplete",
                    tokens,
                )

            save_exchange_log("claude", self._call_count, system_prompt,
                              logged_message, text, None)
            return text
        except anthropic.APIError as e:
            logger.error("Claude API error (with images): %s", e)
            save_exchange_log("claude", self._call_count, system_prompt,
                              logged_message, "", str(e))
            raise
