from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

from .llm_base import LLMAdapter, LLMResponse

TASKS = (
    "change_analysis",
    "code_generation",
    "build_diagnosis",
    "build_repair",
    "code_merge",
)

_NEW_CONTENT = re.compile(
    r"--- NEW FILE CONTENT ---\n(.*?)\n--- END NEW FILE CONTENT ---", flags=re.DOTALL
)


@dataclass
class MockAdapter(LLMAdapter):
    """Offline adapter keyed on the ``TASK:`` tag of each prompt.

    ``scripted`` maps a task to queued responses; once a queue is empty the
    built-in default for that task is returned.
    """

    scripted: Dict[str, List[str]] = field(default_factory=dict)
    prompts: List[str] = field(default_factory=list)

    def complete(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        task = self._task(prompt)
        queue = self.scripted.get(task)
        if queue:
            return LLMResponse(raw_text=queue.pop(0))
        return LLMResponse(raw_text=self._default(task, prompt))

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).raw_text

    def calls(self, task: str) -> int:
        return sum(1 for prompt in self.prompts if self._task(prompt) == task)

    def _task(self, prompt: str) -> str:
        # Only the template header counts; sources in the prompt may quote other tags.
        header = prompt.lstrip().split("\n", 1)[0].strip()
        for task in TASKS:
            if header == f"TASK: {task}":
                return task
        return "unknown"

    def _default(self, task: str, prompt: str) -> str:
        if task == "change_analysis":
            return "## Changelog\n\n- Initial version of the change request."
        if task == "code_generation":
            return (
                "// Create File: CHANGES.md\n"
                "```markdown\n"
                "# Changes\n\n"
                "Generated by the mock adapter.\n"
                "```\n"
            )
        if task == "build_diagnosis":
            return "The build command failed. Review the transcript for the first error."
        if task == "build_repair":
            return ""
        if task == "code_merge":
            match = _NEW_CONTENT.search(prompt)
            return match.group(1) if match else ""
        return ""
