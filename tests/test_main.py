from __future__ import annotations

import logging
from pathlib import Path

import pytest
from google.genai import errors as genai_errors
from openai import OpenAIError

import src.main as cli
from src.main import DEFAULT_BRIEF_TEMPLATE, build_parser, main


def test_missing_brief_gets_a_template(tmp_path: Path):
    brief = tmp_path / "briefs" / "change.md"
    assert main(["--mode", "mock", "--brief", str(brief)]) == 0
    assert brief.read_text(encoding="utf-8") == DEFAULT_BRIEF_TEMPLATE


def test_brief_without_repository_is_fatal(tmp_path: Path):
    brief = tmp_path / "change.md"
    brief.write_text("# Add caching\n\nCache product lookups.\n", encoding="utf-8")
    assert main(["--mode", "mock", "--brief", str(brief)]) == 2


def test_invalid_front_matter_is_fatal(tmp_path: Path):
    brief = tmp_path / "change.md"
    brief.write_text("---\nmax_attempts: zero\n---\n# Add caching\n", encoding="utf-8")
    assert main(["--mode", "mock", "--brief", str(brief), "--repo", str(tmp_path)]) == 2


def test_live_mode_requires_api_key(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr("src.main.load_dotenv", lambda *args, **kwargs: False)
    brief = tmp_path / "change.md"
    brief.write_text("# Add caching\n", encoding="utf-8")
    argv = ["--mode", "live", "--provider", "openai", "--brief", str(brief), "--repo", str(tmp_path)]
    assert main(argv) == 2


def test_build_commands_accumulate():
    args = build_parser().parse_args(
        ["--mode", "mock", "--brief", "x.md", "--build-cmd", "mvn -q compile", "--build-cmd", "mvn -q test"]
    )
    assert args.build_cmd == ["mvn -q compile", "mvn -q test"]


def test_mode_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--brief", "x.md"])


@pytest.fixture()
def brief(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setattr(cli, "write_text", lambda *args, **kwargs: None)
    path = tmp_path / "change.md"
    path.write_text("# Add caching\n\nCache product lookups.\n", encoding="utf-8")
    return path


def _pipeline_raising(error: Exception):
    class FailingPipeline:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def run(self, request, context):
            raise error

    return FailingPipeline


@pytest.mark.parametrize(
    "error",
    [
        OpenAIError("Incorrect API key provided"),
        genai_errors.APIError(400, {"error": {"message": "API key not valid", "status": "INVALID_ARGUMENT"}}),
        ValueError("max_attempts must not be negative"),
    ],
)
def test_provider_and_value_errors_exit_as_fatal(brief: Path, tmp_path: Path, monkeypatch, error):
    monkeypatch.setattr(cli, "CodePipeline", _pipeline_raising(error))
    assert main(["--mode", "mock", "--brief", str(brief), "--repo", str(tmp_path)]) == 2


def test_negative_attempt_budget_exits_as_fatal(brief: Path, tmp_path: Path):
    argv = ["--mode", "mock", "--brief", str(brief), "--repo", str(tmp_path), "--max-attempts", "-1"]
    assert main(argv) == 2


def test_repeated_runs_do_not_stack_log_handlers(tmp_path: Path):
    root = logging.getLogger()
    main(["--mode", "mock", "--brief", str(tmp_path / "a.md")])
    after_first = len(root.handlers)
    main(["--mode", "mock", "--brief", str(tmp_path / "b.md")])
    assert len(root.handlers) == after_first
