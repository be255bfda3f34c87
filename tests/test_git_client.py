from __future__ import annotations

from pathlib import Path

import pytest

from src.vcs.git_client import GitClient, GitError


def test_directory_without_git_is_not_a_repository(work_tree: Path):
    assert GitClient(work_tree).is_repository() is False


def test_gitignore_entry_is_added_once(work_tree: Path):
    (work_tree / ".gitignore").write_text("*.log", encoding="utf-8")
    client = GitClient(work_tree)
    assert client.add_gitignore_entry("target/") is True
    assert client.add_gitignore_entry("target/") is False
    assert (work_tree / ".gitignore").read_text(encoding="utf-8") == "*.log\ntarget/\n"


def test_git_failures_raise(work_tree: Path):
    import shutil

    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    with pytest.raises(GitError):
        GitClient(work_tree).commit_all("nothing here")
