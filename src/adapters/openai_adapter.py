from __future__ import annotations

import logging
import os
from typing import Optional

from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError, InternalServerError

from src.utils.retry import RetryPolicy

from .llm_base import LLMAdapter, LLMError, LLMResponse

logger = logging.getLogger(__name__)


def _is_insufficient_quota(err: Exception) -> bool:
    error = getattr(err, "error", None)
    code = getattr(error, "code", None) or getattr(err, "code", None)
    return code == "insufficient_quota"


def is_transient_openai_error(err: Exception) -> bool:
    if isinstance(err, RateLimitError):
        return not _is_insufficient_quota(err)
    return isinstance(err, (APITimeoutError, APIConnectionError, InternalServerError))


class OpenAIAdapter(LLMAdapter):
    def __init__(self, retry: Optional[RetryPolicy] = None) -> None:
        self.api_key = os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set.")
        self.client = OpenAI(api_key=self.api_key)
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.retry = retry or RetryPolicy(is_transient=is_transient_openai_error, label="openai")

    def _request(self, prompt: str, max_tokens: int, temperature: float) -> LLMResponse:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except RateLimitError as exc:
            if _is_insufficient_quota(exc):
                raise LLMError(
                    "OpenAI API quota exceeded. Please enable billing in your OpenAI account."
                ) from exc
            raise
        content = response.choices[0].message.content
        if content is None:
            raise LLMError("OpenAI returned empty content.")
        usage = getattr(response, "usage", None)
        if usage:
            usage_payload = {
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
                "total_tokens": getattr(usage, "total_tokens", None),
            }
            logger.info(
                "[openai] model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s",
                self.model,
                usage_payload["prompt_tokens"],
                usage_payload["completion_tokens"],
                usage_payload["total_tokens"],
            )
        else:
            usage_payload = None
            logger.debug("[openai] usage not provided by SDK")
        return LLMResponse(raw_text=content, usage=usage_payload)

    def complete(self, prompt: str) -> LLMResponse:
        max_tokens = int(os.getenv("ORCH_MAX_OUTPUT_TOKENS", "8000"))
        temperature = float(os.getenv("ORCH_TEMPERATURE", "0.2"))
        return self.retry.call(lambda: self._request(prompt, max_tokens, temperature))

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).raw_text
