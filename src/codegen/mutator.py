from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Protocol

from src.codegen.extractor import extract_content
from src.codegen.models import FileAction, FileOperation

logger = logging.getLogger(__name__)


class CodeMerger(Protocol):
    def merge(self, existing: str, incoming: str) -> str:
        raise NotImplementedError


class MutationError(RuntimeError):
    def __init__(self, operation: FileOperation, message: str) -> None:
        super().__init__(f"{operation.action.tag} {operation.path}: {message}")
        self.operation = operation


class FileMutator:
    """Applies file operations to a working tree rooted at ``root``."""

    def __init__(self, root: Path, merger: CodeMerger) -> None:
        self.root = Path(root).resolve()
        self.merger = merger

    def resolve(self, operation: FileOperation) -> Path:
        relative = operation.path.strip().replace("\\", "/").lstrip("/")
        if not relative:
            raise MutationError(operation, "path is empty")
        target = (self.root / relative).resolve()
        if target != self.root and self.root not in target.parents:
            raise MutationError(operation, "path escapes the working tree")
        return target

    def apply(self, operation: FileOperation) -> None:
        target = self.resolve(operation)
        try:
            if operation.action is FileAction.CREATE:
                self._write(target, operation.content)
                logger.info("[mutate] created %s", operation.path)
            elif operation.action is FileAction.MODIFY:
                self._modify(target, operation)
            elif operation.action is FileAction.REFACTOR:
                if target.exists():
                    target.unlink()
                    logger.info("[mutate] deleted %s for refactoring", operation.path)
                self._write(target, operation.content)
                logger.info("[mutate] refactored %s", operation.path)
        except UnicodeDecodeError as exc:
            raise MutationError(operation, f"existing file is not valid UTF-8: {exc.reason}") from exc
        except OSError as exc:
            raise MutationError(operation, str(exc)) from exc

    def apply_batch(self, operations: Iterable[FileOperation]) -> List[MutationError]:
        failures: List[MutationError] = []
        for operation in operations:
            try:
                self.apply(operation)
            except MutationError as exc:
                logger.error("[mutate] %s", exc)
                failures.append(exc)
        return failures

    def _modify(self, target: Path, operation: FileOperation) -> None:
        if not target.exists():
            logger.warning("[mutate] cannot modify missing file %s; creating it instead", operation.path)
            self._write(target, operation.content)
            return
        existing = target.read_text(encoding="utf-8")
        merged = extract_content(self.merger.merge(existing, operation.content) or "")
        if not merged:
            logger.warning("[mutate] merge returned nothing for %s; keeping original content", operation.path)
            return
        self._write(target, merged)
        logger.info("[mutate] merged and updated %s", operation.path)

    def _write(self, target: Path, content: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
