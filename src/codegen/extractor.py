from __future__ import annotations

import re
from typing import List, Optional, Tuple

_OPEN_FENCE = re.compile(r"^`{3,}[\w+#.\-]*$")
_CLOSE_FENCE = re.compile(r"^`{3,}$")


def _is_open_fence(line: str) -> bool:
    return bool(_OPEN_FENCE.match(line.strip()))


def _is_close_fence(line: str) -> bool:
    return bool(_CLOSE_FENCE.match(line.strip()))


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` only, after folding ``\\r\\n``."""
    return text.replace("\r\n", "\n").split("\n")


def _encloses_whole_payload(lines: List[str]) -> bool:
    return len(lines) >= 2 and _is_open_fence(lines[0]) and _is_close_fence(lines[-1])


def _first_block(lines: List[str]) -> Optional[Tuple[int, int]]:
    for start, line in enumerate(lines):
        if not _is_open_fence(line):
            continue
        for end in range(start + 1, len(lines)):
            if _is_close_fence(lines[end]):
                return start, end
        return None
    return None


def _step(text: str) -> str:
    lines = split_lines(text.strip())
    if _encloses_whole_payload(lines):
        lines = lines[1:-1]
    else:
        block = _first_block(lines)
        if block is not None:
            start, end = block
            lines = lines[start + 1:end]
        else:
            # No balanced pair left, so every fence line is stray.
            lines = [line for line in lines if not (_is_open_fence(line) or _is_close_fence(line))]
    return "\n".join(lines).strip()


def extract_content(raw: str) -> str:
    """Return the file content carried by a generated payload.

    A fence around the whole payload is peeled first. Otherwise the first
    fenced block found anywhere wins and the prose around it is discarded.
    Without any balanced block, stray fence lines are dropped. Steps repeat
    until the text is stable, so the function is idempotent.
    """
    if not raw:
        return ""
    current = raw
    while True:
        cleaned = _step(current)
        if cleaned == current:
            return cleaned
        current = cleaned
