from __future__ import annotations

from pathlib import Path

import pytest

from src.gates.runner import DEFAULT_BUILD_COMMANDS
from src.healing.loop import DEFAULT_MAX_ATTEMPTS
from src.utils.config import (
    ChangeRequest,
    ChangeRequestError,
    build_context,
    load_change_request,
    parse_frontmatter,
)

BRIEF = """---
issue_key: SHOP-42
repo_path: service
build_commands:
  - mvn -q verify
max_attempts: 4
---
# Add order export

Orders can be exported as CSV.
"""


def write_brief(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "brief.md"
    path.write_text(content, encoding="utf-8")
    return path


def test_yaml_front_matter_is_split_from_body():
    meta, body = parse_frontmatter(BRIEF)
    assert meta["issue_key"] == "SHOP-42"
    assert body.startswith("# Add order export")


def test_json_front_matter_is_accepted():
    meta, body = parse_frontmatter('{"max_attempts": 2}\nFix the login bug.')
    assert meta == {"max_attempts": 2}
    assert body == "Fix the login bug."


def test_plain_brief_has_no_meta():
    assert parse_frontmatter("Just text") == ({}, "Just text")


def test_load_validates_and_resolves_front_matter(tmp_path: Path, schemas_dir: Path):
    request = load_change_request(write_brief(tmp_path, BRIEF), schemas_dir)
    context = build_context(request, tmp_path / "run")

    assert request.body == "# Add order export\n\nOrders can be exported as CSV."
    assert context.repo_path == (tmp_path / "service").resolve()
    assert context.build_commands == ("mvn -q verify",)
    assert context.max_attempts == 4
    assert context.issue_key == "SHOP-42"


def test_invalid_front_matter_is_rejected(tmp_path: Path, schemas_dir: Path):
    brief = "---\nmax_attempts: zero\n---\nDo something."
    with pytest.raises(ChangeRequestError, match="max_attempts"):
        load_change_request(write_brief(tmp_path, brief), schemas_dir)


def test_unknown_front_matter_key_is_rejected(tmp_path: Path, schemas_dir: Path):
    brief = "---\nrepo: x\n---\nDo something."
    with pytest.raises(ChangeRequestError):
        load_change_request(write_brief(tmp_path, brief), schemas_dir)


def test_brief_without_description_is_rejected(tmp_path: Path, schemas_dir: Path):
    with pytest.raises(ChangeRequestError):
        load_change_request(write_brief(tmp_path, "---\nissue_key: A-1\n---\n\n"), schemas_dir)


def test_explicit_arguments_override_front_matter(tmp_path: Path, schemas_dir: Path):
    request = load_change_request(write_brief(tmp_path, BRIEF), schemas_dir)
    context = build_context(
        request,
        tmp_path / "run",
        repo_path=tmp_path / "other",
        build_commands=("make test",),
        max_attempts=1,
        issue_key="OVERRIDE-1",
        push=True,
    )
    assert context.repo_path == (tmp_path / "other").resolve()
    assert context.build_commands == ("make test",)
    assert context.max_attempts == 1
    assert context.issue_key == "OVERRIDE-1"
    assert context.push is True


def test_environment_fills_gaps(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ORCH_BUILD_CMD", "npm test")
    monkeypatch.setenv("ORCH_MAX_ATTEMPTS", "3")
    context = build_context(ChangeRequest(body="x"), tmp_path / "run", repo_path=tmp_path)
    assert context.build_commands == ("npm test",)
    assert context.max_attempts == 3


def test_defaults_apply_without_settings(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("ORCH_BUILD_CMD", raising=False)
    monkeypatch.delenv("ORCH_MAX_ATTEMPTS", raising=False)
    context = build_context(ChangeRequest(body="x"), tmp_path / "run", repo_path=tmp_path)
    assert context.build_commands == DEFAULT_BUILD_COMMANDS
    assert context.max_attempts == DEFAULT_MAX_ATTEMPTS
    assert context.issue_key == "CHANGE"


def test_missing_repository_is_an_error(tmp_path: Path):
    with pytest.raises(ChangeRequestError):
        build_context(ChangeRequest(body="x"), tmp_path / "run")


def test_context_is_immutable(tmp_path: Path):
    context = build_context(ChangeRequest(body="x"), tmp_path / "run", repo_path=tmp_path)
    with pytest.raises(AttributeError):
        context.max_attempts = 99


def test_negative_attempt_budget_is_rejected(tmp_path: Path):
    with pytest.raises(ChangeRequestError, match="must not be negative"):
        build_context(ChangeRequest(body="x"), tmp_path / "run", repo_path=tmp_path, max_attempts=-1)
