from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_SUFFIXES = (
    ".java",
    ".py",
    ".xml",
    ".yml",
    ".yaml",
    ".properties",
    ".md",
    ".txt",
    ".toml",
    ".json",
    ".js",
    ".ts",
)

SKIPPED_DIRS = {
    ".git",
    ".ai-state",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
    "target",
    "build",
    "dist",
    ".idea",
    ".pytest_cache",
}


def iter_project_files(root: Path) -> Iterator[Path]:
    root = Path(root)
    for current, dirs, files in os.walk(root):
        dirs[:] = sorted(name for name in dirs if name not in SKIPPED_DIRS)
        for name in sorted(files):
            yield Path(current) / name


def _relative(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


def list_project_files(root: Path) -> str:
    root = Path(root)
    if not root.exists():
        return ""
    return "\n".join(_relative(root, path) for path in iter_project_files(root))


def collect_sources(root: Path, suffixes: Iterable[str] = DEFAULT_SOURCE_SUFFIXES) -> str:
    """Render every source file under ``root`` as one delimited text block."""
    root = Path(root)
    wanted = tuple(suffix.lower() for suffix in suffixes) or DEFAULT_SOURCE_SUFFIXES
    if not root.exists():
        logger.warning("[snapshot] %s does not exist; no sources to collect", root)
        return ""
    blocks: List[str] = []
    for path in iter_project_files(root):
        if not path.name.lower().endswith(wanted):
            continue
        relative = _relative(root, path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("[snapshot] could not read %s: %s", relative, exc)
            continue
        blocks.append(f"--- FILE START: {relative} ---\n{content}\n--- FILE END: {relative} ---\n")
    return "\n".join(blocks)
