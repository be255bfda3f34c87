from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence

from src.utils.io import append_text, read_text
from src.utils.time import branch_timestamp

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    pass


class GitClient:
    """Thin wrapper around the ``git`` executable for one working tree."""

    def __init__(self, repo_root: Path, remote: str = "origin") -> None:
        self.root = Path(repo_root).resolve()
        self.remote = remote

    def _run(self, args: Sequence[str], check: bool = True) -> str:
        command: List[str] = ["git", *args]
        completed = subprocess.run(
            command,
            cwd=str(self.root),
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        output = completed.stdout or ""
        if check and completed.returncode != 0:
            raise GitError(f"{' '.join(command)} failed ({completed.returncode}): {output.strip()}")
        return output

    def is_repository(self) -> bool:
        if not (self.root / ".git").exists():
            return False
        try:
            return self._run(["rev-parse", "--is-inside-work-tree"]).strip() == "true"
        except (GitError, OSError):
            return False

    def create_feature_branch(self, issue_key: str) -> str:
        branch = f"feature/{issue_key}_{branch_timestamp()}"
        logger.info("[git] creating and checking out %s", branch)
        self._run(["checkout", "-b", branch])
        return branch

    def add_gitignore_entry(self, entry: str) -> bool:
        path = self.root / ".gitignore"
        existing = read_text(path).splitlines() if path.exists() else []
        if entry in (line.strip() for line in existing):
            return False
        prefix = "\n" if existing and not read_text(path).endswith("\n") else ""
        append_text(path, f"{prefix}{entry}\n")
        logger.info("[git] added %s to .gitignore", entry)
        return True

    def has_changes(self) -> bool:
        return bool(self._run(["status", "--porcelain"]).strip())

    def commit_all(self, message: str) -> bool:
        self._run(["add", "-A"])
        if not self.has_changes():
            logger.info("[git] nothing to commit")
            return False
        self._run(["commit", "-m", message])
        logger.info("[git] committed: %s", message)
        return True

    def push(self, branch: str) -> None:
        logger.info("[git] pushing %s to %s", branch, self.remote)
        self._run(["push", "--set-upstream", self.remote, branch])
