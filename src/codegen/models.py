from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union


class FileAction(Enum):
    CREATE = "Create File"
    MODIFY = "Modify File"
    REFACTOR = "Refactored File"

    @property
    def tag(self) -> str:
        return self.value

    @classmethod
    def from_tag(cls, tag: str) -> "FileAction":
        for action in cls:
            if action.value == tag:
                return action
        raise ValueError(f"Unknown action tag: {tag}")


@dataclass(frozen=True)
class FileOperation:
    action: FileAction
    path: str
    content: str

    def __post_init__(self) -> None:
        if not self.path.strip():
            raise ValueError("FileOperation path must not be empty.")


GeneratedBatch = List[FileOperation]

FAILED_WITHOUT_OUTPUT = "Build failed without producing any output."


@dataclass(frozen=True)
class BuildOutcome:
    success: bool
    transcript: str = ""

    def __post_init__(self) -> None:
        if self.success and self.transcript:
            raise ValueError("A successful build carries no transcript.")
        if not self.success and not self.transcript:
            raise ValueError("A failed build must carry a transcript.")

    @classmethod
    def passed(cls) -> "BuildOutcome":
        return cls(success=True, transcript="")

    @classmethod
    def failed(cls, transcript: str) -> "BuildOutcome":
        return cls(success=False, transcript=transcript if transcript.strip() else FAILED_WITHOUT_OUTPUT)


@dataclass(frozen=True)
class HealingAttempt:
    number: int
    diagnosis: str
    outcome: BuildOutcome


class HealingStatus(Enum):
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


class AbortReason(Enum):
    STAGNATED = "stagnated"
    EMPTY_REPAIR = "empty_repair"
    EXHAUSTED = "exhausted"


@dataclass
class HealingResult:
    status: HealingStatus
    verify_calls: int
    attempts: int
    reason: Optional[AbortReason] = None
    last_attempt: Optional[HealingAttempt] = None
    last_transcript: str = ""
    last_diagnosis: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is HealingStatus.SUCCEEDED


@dataclass(frozen=True)
class RunContext:
    """Everything one pipeline run needs to know about its request.

    Built once per invocation and handed to every stage; nothing downstream
    mutates it.
    """

    repo_path: Path
    run_dir: Path
    build_commands: Tuple[str, ...]
    max_attempts: int = 10
    issue_key: str = "CHANGE"
    feature_branch: Optional[str] = None
    source_suffixes: Tuple[str, ...] = ()
    clean_paths: Tuple[str, ...] = field(default_factory=tuple)
    push: bool = False


@dataclass(frozen=True)
class Proceed:
    changelog: str


@dataclass(frozen=True)
class Skip:
    pass


ChangeDecision = Union[Proceed, Skip]
