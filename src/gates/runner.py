from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from src.codegen.models import BuildOutcome
from src.utils.io import write_text

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMANDS = ("mvn clean verify",)


@dataclass
class GateResult:
    command: str
    return_code: int
    output: str

    @property
    def passed(self) -> bool:
        return self.return_code == 0


def run_command(command: str, cwd: Path, timeout: Optional[float] = None) -> GateResult:
    try:
        completed = subprocess.run(
            command,
            shell=True,
            cwd=str(cwd),
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        partial = exc.output or ""
        if isinstance(partial, bytes):
            partial = partial.decode("utf-8", errors="replace")
        return GateResult(
            command=command,
            return_code=-1,
            output=f"{partial}\nCommand timed out after {timeout} seconds.",
        )
    return GateResult(command=command, return_code=completed.returncode, output=completed.stdout or "")


def run_commands(
    commands: Iterable[str],
    cwd: Path,
    log_dir: Optional[Path] = None,
    timeout: Optional[float] = None,
    label: str = "gate",
) -> List[GateResult]:
    """Run commands in order, stopping after the first one that fails."""
    results: List[GateResult] = []
    for index, command in enumerate(commands, start=1):
        logger.info("[build] $ %s", command)
        result = run_command(command, cwd, timeout)
        if log_dir is not None:
            write_text(log_dir / f"{label}_{index}.log", result.output)
        results.append(result)
        if not result.passed:
            break
    return results


def format_transcript(results: Iterable[GateResult]) -> str:
    sections: List[str] = []
    for result in results:
        if result.passed:
            continue
        sections.append(
            f"$ {result.command}\n{result.output.rstrip()}\n[exit code {result.return_code}]"
        )
    return "\n\n".join(sections)


class BuildVerifier:
    """Runs the build/test commands inside a working tree."""

    def __init__(
        self,
        commands: Iterable[str] = DEFAULT_BUILD_COMMANDS,
        log_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.commands = tuple(commands)
        self.log_dir = log_dir
        self.timeout = timeout
        self.calls = 0

    def verify(self, root: Path) -> BuildOutcome:
        self.calls += 1
        logger.info("[build] running verification #%d in %s", self.calls, root)
        results = run_commands(
            self.commands,
            Path(root),
            log_dir=self.log_dir,
            timeout=self.timeout,
            label=f"verify_{self.calls:02d}",
        )
        if all(result.passed for result in results):
            logger.info("[build] build successful")
            return BuildOutcome.passed()
        logger.error("[build] build failed")
        return BuildOutcome.failed(format_transcript(results))
