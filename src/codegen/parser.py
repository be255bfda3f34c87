from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from src.codegen.extractor import extract_content, split_lines
from src.codegen.models import FileAction, FileOperation, GeneratedBatch

logger = logging.getLogger(__name__)

_HEADER = re.compile(
    r"^//\s*(?P<tag>" + "|".join(re.escape(action.tag) for action in FileAction) + r"):(?P<path>.*)$"
)


@dataclass(frozen=True)
class Header:
    action: FileAction
    path: str
    line_no: int


@dataclass(frozen=True)
class PayloadLine:
    text: str


Token = Union[Header, PayloadLine]


def match_header(line: str, line_no: int = 0) -> Optional[Header]:
    match = _HEADER.match(line.strip())
    if not match:
        return None
    return Header(
        action=FileAction.from_tag(match.group("tag")),
        path=match.group("path").strip(),
        line_no=line_no,
    )


def tokenize(text: str) -> Iterator[Token]:
    for line_no, line in enumerate(split_lines(text), start=1):
        header = match_header(line, line_no)
        if header is not None:
            yield header
        else:
            yield PayloadLine(line)


def _close_segment(header: Header, payload: List[str], batch: GeneratedBatch) -> None:
    if not header.path:
        logger.warning("[parser] skipping %s marker without a path (line %d)", header.action.tag, header.line_no)
        return
    content = extract_content("\n".join(payload))
    if not content:
        logger.warning("[parser] skipping empty code block for %s", header.path)
        return
    batch.append(FileOperation(action=header.action, path=header.path, content=content))


def parse(text: str) -> GeneratedBatch:
    """Split marked generator output into file operations, in marker order.

    A segment starts at a ``// <Action> File: <path>`` header and runs until
    the next header or the end of input. Never raises: text without markers
    gives an empty batch.
    """
    batch: GeneratedBatch = []
    if not text:
        return batch

    current: Optional[Header] = None
    payload: List[str] = []
    preamble = 0
    for token in tokenize(text):
        if isinstance(token, Header):
            if current is not None:
                _close_segment(current, payload, batch)
            current = token
            payload = []
        elif current is None:
            if token.text.strip():
                preamble += 1
        else:
            payload.append(token.text)
    if current is not None:
        _close_segment(current, payload, batch)

    if preamble:
        logger.debug("[parser] ignored %d line(s) before the first marker", preamble)
    if not batch:
        logger.warning("[parser] no file markers with content found in generated output")
    return batch
