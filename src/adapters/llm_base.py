from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol


class LLMError(RuntimeError):
    pass


class TransientLLMError(LLMError):
    pass


@dataclass
class LLMResponse:
    raw_text: str
    usage: Optional[Dict[str, Optional[int]]] = None


class LLMAdapter(Protocol):
    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def complete(self, prompt: str) -> LLMResponse:
        return LLMResponse(raw_text=self.generate(prompt))
