"""Gemini API client wrapper for visual change explanations."""

from __future__ import annotations

import base64
import logging
import os
import time

from google import genai
from google.genai import types

from src.ai.client import describe_images, save_exchange_log

logger = logging.getLogger(__name__)


class GeminiClient:
    """Wrapper around the Google Gen AI SDK."""

    def __init__(self, model: str = "gemini-2.5-pro"):
        api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "GEMINI_API_KEY environment variable is not set. "
                "Please set it before requesting explanations."
            )
        self.client = genai.Client(api_key=api_key)
        self.model = model
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete_with_images(
        self,
        system_prompt: str,
        images: list[tuple[str, str]],
        user_message: str,
        temperature: float = 0,
        mime_type: str = "image/png",
    ) -> str:
        """Send labelled base64 images followed by a final instruction; return the text response."""
        self._call_count += 1
        logger.info("Calling Gemini with %d image(s) (call #%d, model=%s)...",
                    len(images), self._call_count, self.model)

        parts: list[types.Part] = []
        for label, data in images:
            parts.append(types.Part.from_text(text=label))
            parts.append(types.Part.from_bytes(data=base64.b64decode(data), mime_type=mime_type))
        parts.append(types.Part.from_text(text=user_message))

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            response_mime_type="application/json",
        )
        logged_message = describe_images(images, user_message)

        try:
            call_start = time.time()
            response = self.client.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
            text = str(response.text) if response.text else ""
            logger.info("Gemini response received in %.1fs (%d chars)",
                        time.time() - call_start, len(text))
            save_exchange_log("gemini", self._call_count, system_prompt,
                              logged_message, text, None)
            return text
        except Exception as e:
            logger.error("Gemini API error (with images): %s", e)
            save_exchange_log("gemini", self._call_count, system_prompt,
                              logged_message, "", str(e))
            raise
