from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from jsonschema import ValidationError, validate

from src.codegen.models import RunContext
from src.gates.runner import DEFAULT_BUILD_COMMANDS
from src.healing.loop import DEFAULT_MAX_ATTEMPTS
from src.healing.snapshot import DEFAULT_SOURCE_SUFFIXES
from src.utils.io import read_text

SCHEMA_NAME = "change_request.schema.json"
DEFAULT_CLEAN_PATHS = ("target",)


class ChangeRequestError(ValueError):
    pass


@dataclass
class ChangeRequest:
    body: str
    meta: Dict[str, Any] = field(default_factory=dict)
    source: Optional[Path] = None


def parse_frontmatter(content: str) -> Tuple[Dict, str]:
    if not content.startswith("---"):
        stripped = content.lstrip()
        if stripped.startswith("{"):
            try:
                decoder = json.JSONDecoder()
                parsed, end = decoder.raw_decode(stripped)
            except json.JSONDecodeError:
                return {}, content
            if isinstance(parsed, dict):
                body = stripped[end:].lstrip("\n")
                return parsed, body
        return {}, content
    parts = content.split("---", 2)
    if len(parts) < 3:
        return {}, content
    meta_raw = parts[1].strip()
    body = parts[2].lstrip("\n")
    try:
        meta = yaml.safe_load(meta_raw) or {}
    except yaml.YAMLError as exc:
        raise ChangeRequestError(f"Front matter is not valid YAML: {exc}") from exc
    if not isinstance(meta, dict):
        raise ChangeRequestError("Front matter must be a mapping.")
    return meta, body


def load_change_request(path: Path, schemas_dir: Path) -> ChangeRequest:
    meta, body = parse_frontmatter(read_text(path))
    schema = json.loads(read_text(schemas_dir / SCHEMA_NAME))
    try:
        validate(instance=meta, schema=schema)
    except ValidationError as exc:
        location = ".".join(str(part) for part in exc.absolute_path) or "front matter"
        raise ChangeRequestError(f"Invalid change request {location}: {exc.message}") from exc
    if not body.strip():
        raise ChangeRequestError(f"Change request {path} has no description.")
    return ChangeRequest(body=body.strip(), meta=meta, source=Path(path))


def _env(key: str, default: str) -> str:
    return os.getenv(key, default)


def _env_build_commands() -> Tuple[str, ...]:
    value = _env("ORCH_BUILD_CMD", "").strip()
    return (value,) if value else DEFAULT_BUILD_COMMANDS


def _env_max_attempts() -> int:
    value = _env("ORCH_MAX_ATTEMPTS", "")
    try:
        return int(value) if value else DEFAULT_MAX_ATTEMPTS
    except ValueError as exc:
        raise ChangeRequestError(f"ORCH_MAX_ATTEMPTS must be an integer, got {value!r}") from exc


def build_context(
    request: ChangeRequest,
    run_dir: Path,
    repo_path: Optional[Path] = None,
    build_commands: Optional[Tuple[str, ...]] = None,
    max_attempts: Optional[int] = None,
    issue_key: Optional[str] = None,
    push: bool = False,
) -> RunContext:
    """Resolve run settings: explicit arguments, then front matter, then environment, then defaults."""
    meta = request.meta

    if repo_path is None:
        if "repo_path" not in meta:
            raise ChangeRequestError("No repository given: pass --repo or set repo_path in the front matter.")
        repo_path = Path(meta["repo_path"])
        if not repo_path.is_absolute() and request.source is not None:
            repo_path = request.source.parent / repo_path

    if not build_commands:
        build_commands = tuple(meta["build_commands"]) if meta.get("build_commands") else _env_build_commands()

    if max_attempts is None:
        max_attempts = int(meta["max_attempts"]) if "max_attempts" in meta else _env_max_attempts()
    if max_attempts < 0:
        raise ChangeRequestError(f"max_attempts must not be negative, got {max_attempts}")

    if not issue_key:
        issue_key = meta.get("issue_key") or (request.source.stem if request.source else "CHANGE")

    return RunContext(
        repo_path=Path(repo_path).resolve(),
        run_dir=run_dir,
        build_commands=tuple(build_commands),
        max_attempts=max_attempts,
        issue_key=str(issue_key),
        source_suffixes=tuple(meta.get("source_suffixes") or DEFAULT_SOURCE_SUFFIXES),
        clean_paths=tuple(meta.get("clean_paths") or DEFAULT_CLEAN_PATHS),
        push=push,
    )
