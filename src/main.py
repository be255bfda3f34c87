from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from google.genai import errors as genai_errors
from openai import OpenAIError

from src.pipeline_code import CodePipeline
from src.utils.config import ChangeRequestError, build_context, load_change_request
from src.utils.io import write_text
from src.utils.time import utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_BRIEF_TEMPLATE = """---
issue_key: CHANGE-1
repo_path: ../workspace/my-service
build_commands:
  - mvn clean verify
max_attempts: 10
---
# Change title

Describe the change you want applied to the repository.

## Acceptance
List what must be true once the change is in place.
"""

API_KEYS = {"gemini": "GEMINI_API_KEY", "openai": "OPENAI_API_KEY"}

# Provider SDK errors do not derive from RuntimeError.
FATAL_ERRORS = (ChangeRequestError, RuntimeError, ValueError, OpenAIError, genai_errors.APIError)

_installed_handlers: List[logging.Handler] = []


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Self-healing change pipeline")
    parser.add_argument("--mode", choices=["mock", "live"], required=True)
    parser.add_argument("--brief", required=True, help="Change request (Markdown with optional front matter)")
    parser.add_argument("--repo", type=Path, default=None, help="Working tree to change")
    parser.add_argument("--provider", choices=sorted(API_KEYS), default="gemini")
    parser.add_argument("--build-cmd", action="append", default=[], help="Build/verify command")
    parser.add_argument("--max-attempts", type=int, default=None)
    parser.add_argument("--issue-key", default=None)
    parser.add_argument("--push", action="store_true", help="Push the feature branch after committing")
    parser.add_argument("--max-output-tokens", type=int, default=8000)
    parser.add_argument("--temperature", type=float, default=0.2)
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(console)
    _installed_handlers.append(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s %(message)s"))
        root.addHandler(handler)
        _installed_handlers.append(handler)

    for noisy in ("httpx", "httpcore", "openai", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _ensure_env(base_dir: Path, provider: str) -> None:
    load_dotenv(base_dir / ".env")
    key = API_KEYS[provider]
    if not os.getenv(key):
        raise RuntimeError(
            f"Missing required API key: {key}. Create a .env file from .env.example and set the key."
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    base_dir = Path(__file__).resolve().parents[1]
    run_dir = base_dir / "runs" / utc_timestamp()

    os.environ["ORCH_MAX_OUTPUT_TOKENS"] = str(args.max_output_tokens)
    os.environ["ORCH_TEMPERATURE"] = str(args.temperature)

    brief_path = Path(args.brief)
    if not brief_path.exists():
        write_text(brief_path, DEFAULT_BRIEF_TEMPLATE)
        logger.info("Brief template created at %s. Please edit it with the change details.", brief_path)
        return 0

    try:
        if args.mode == "live":
            _ensure_env(base_dir, args.provider)
        request = load_change_request(brief_path, base_dir / "schemas")
        context = build_context(
            request,
            run_dir,
            repo_path=args.repo,
            build_commands=tuple(args.build_cmd) or None,
            max_attempts=args.max_attempts,
            issue_key=args.issue_key,
            push=args.push,
        )
        write_text(run_dir / "inputs" / "brief.md", request.body + "\n")
        report = CodePipeline(args.mode, base_dir, provider=args.provider).run(request, context)
    except FATAL_ERRORS as exc:
        logger.error("Fatal error: %s", exc)
        return 2

    logger.info("Run finished with status %s (artifacts in %s)", report.status, run_dir)
    return 1 if report.status == "failed" else 0


if __name__ == "__main__":
    sys.exit(main())
