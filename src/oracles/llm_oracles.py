from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple

from src.adapters.llm_base import LLMAdapter
from src.utils.io import read_text, write_json, write_text

logger = logging.getLogger(__name__)


class PromptOracle:
    """An LLM call driven by a prompt template from ``configs/prompts``.

    Each response is captured under ``raw_dir`` before it is returned, the
    same way every pipeline turn keeps its raw output.
    """

    task = ""

    def __init__(self, adapter: LLMAdapter, prompts_dir: Path, raw_dir: Optional[Path] = None) -> None:
        self.adapter = adapter
        self.prompts_dir = prompts_dir
        self.raw_dir = raw_dir
        self.calls = 0

    def _ask(self, sections: Sequence[Tuple[str, str]]) -> str:
        template = read_text(self.prompts_dir / f"{self.task}.md")
        body = "\n\n".join(f"--- {label} ---\n{text}\n--- END {label} ---" for label, text in sections)
        prompt = f"{template}\n\nINPUT:\n{body}\n"
        self.calls += 1
        logger.info("[oracle] %s call #%d", self.task, self.calls)
        response = self.adapter.complete(prompt)
        if self.raw_dir is not None:
            stem = f"{self.task}_{self.calls:02d}"
            write_text(self.raw_dir / f"{stem}.txt", response.raw_text)
            if response.usage:
                write_json(self.raw_dir / f"{stem}_usage.json", response.usage)
        return response.raw_text or ""


class GenerationOracle(PromptOracle):
    task = "code_generation"

    def generate(self, request: str, changelog: str, file_listing: str, sources: str = "") -> str:
        return self._ask(
            [
                ("CHANGE REQUEST", request),
                ("CHANGELOG", changelog),
                ("EXISTING FILES", file_listing or "(empty repository)"),
                ("EXISTING SOURCES", sources or "(no source files)"),
            ]
        )


class DiagnosisOracle(PromptOracle):
    task = "build_diagnosis"

    def diagnose(self, transcript: str, previous: str = "") -> str:
        sections = [("BUILD LOG", transcript)]
        if previous:
            sections.append(("PREVIOUS ANALYSIS", previous))
        return self._ask(sections)


class RepairOracle(PromptOracle):
    task = "build_repair"

    def repair(self, transcript: str, analysis: str, sources: str) -> str:
        corrected = self._ask(
            [
                ("BUILD LOG", transcript),
                ("ANALYSIS", analysis),
                ("PROJECT SOURCE FILES", sources),
            ]
        )
        if not corrected.strip():
            logger.warning("[oracle] build_repair returned an empty response")
        return corrected


class MergeOracle(PromptOracle):
    task = "code_merge"

    def merge(self, existing: str, incoming: str) -> str:
        return self._ask(
            [
                ("EXISTING FILE CONTENT", existing),
                ("NEW FILE CONTENT", incoming),
            ]
        )


class ChangeComparisonOracle(PromptOracle):
    task = "change_analysis"

    def compare(self, old_text: str, new_text: str) -> str:
        return self._ask(
            [
                ("OLD CHANGE REQUEST", old_text),
                ("NEW CHANGE REQUEST", new_text),
            ]
        )
