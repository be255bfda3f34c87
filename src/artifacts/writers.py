from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from src.codegen.models import HealingResult
from src.utils.io import append_text, read_text, write_text
from src.utils.time import display_timestamp

STATE_DIR = ".ai-state"
SNAPSHOT_FILE_NAME = "change_request.txt"
CHANGELOG_FILE_NAME = "AI_CHANGELOG.md"
FAILURE_ANALYSIS_FILE_NAME = "BUILD_FAILURE_ANALYSIS.md"
TRANSCRIPT_TAIL_LINES = 80


def append_with_metadata(path: Path, content: str, branch: Optional[str]) -> None:
    header = f"\n\n---\n**Date:** {display_timestamp()}\n**Branch:** {branch or 'n/a'}\n---\n\n"
    append_text(path, header + content + "\n--- END ---\n")


def write_changelog(root: Path, changelog: str, branch: Optional[str]) -> Path:
    path = root / CHANGELOG_FILE_NAME
    append_with_metadata(path, changelog.strip(), branch)
    return path


def snapshot_path(root: Path) -> Path:
    return root / STATE_DIR / SNAPSHOT_FILE_NAME


def read_snapshot(root: Path) -> str:
    path = snapshot_path(root)
    if not path.exists():
        return ""
    return read_text(path)


def write_snapshot(root: Path, request_text: str) -> Path:
    path = snapshot_path(root)
    write_text(path, request_text)
    return path


def _tail(text: str, lines: int) -> str:
    split = text.rstrip().splitlines()
    if len(split) <= lines:
        return "\n".join(split)
    return "\n".join(["...", *split[-lines:]])


def write_failure_analysis(root: Path, result: HealingResult) -> Path:
    reason = result.reason.value if result.reason else "unknown"
    lines: List[str] = [
        "# AI Build Failure Analysis",
        "",
        "The generated code failed the build verification step and self-healing did not converge.",
        "",
        f"- Stop reason: {reason}",
        f"- Healing attempts: {result.attempts}",
        f"- Build runs: {result.verify_calls}",
        "",
        "## Last diagnosis",
        "",
        result.last_diagnosis.strip() or "_No diagnosis was produced._",
        "",
        "## Last build output",
        "",
        "```",
        _tail(result.last_transcript, TRANSCRIPT_TAIL_LINES),
        "```",
    ]
    path = root / FAILURE_ANALYSIS_FILE_NAME
    write_text(path, "\n".join(lines) + "\n")
    return path
