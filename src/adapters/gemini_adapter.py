from __future__ import annotations

import logging
import os
from typing import List, Optional

from google import genai
from google.genai import errors as genai_errors

from src.utils.retry import RetryExhaustedError, RetryPolicy

from .llm_base import LLMAdapter, LLMError, LLMResponse

logger = logging.getLogger(__name__)


def is_transient_gemini_error(err: Exception) -> bool:
    if isinstance(err, genai_errors.ServerError):
        return True
    return isinstance(err, genai_errors.APIError) and getattr(err, "code", None) == 429


class GeminiAdapter(LLMAdapter):
    def __init__(self, retry: Optional[RetryPolicy] = None) -> None:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is not set.")

        self.client = genai.Client(api_key=api_key)

        primary = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.model_candidates: List[str] = [primary]
        for fallback in ("gemini-flash-latest", "gemini-1.5-pro"):
            if fallback not in self.model_candidates:
                self.model_candidates.append(fallback)

        self.retry = retry or RetryPolicy(
            max_attempts=int(os.getenv("GEMINI_MAX_ATTEMPTS", "3")),
            base_delay=float(os.getenv("GEMINI_BASE_DELAY_SECONDS", "2.0")),
            is_transient=is_transient_gemini_error,
            label="gemini",
        )

    def _request(self, model: str, prompt: str) -> str:
        logger.debug("[gemini] model=%s prompt_chars=%d", model, len(prompt))
        response = self.client.models.generate_content(
            model=model,
            contents=prompt,
        )
        text = getattr(response, "text", None)
        if not text:
            raise LLMError("Gemini returned empty content.")
        return text

    def generate(self, prompt: str) -> str:
        last_err: Exception | None = None

        for model in self.model_candidates:
            try:
                return self.retry.call(lambda: self._request(model, prompt))
            except RetryExhaustedError as exc:
                last_err = exc
                logger.warning("[gemini] switching model after failures: %s", model)

        raise RetryExhaustedError(len(self.model_candidates), last_err) from last_err

    def complete(self, prompt: str) -> LLMResponse:
        return LLMResponse(raw_text=self.generate(prompt))
