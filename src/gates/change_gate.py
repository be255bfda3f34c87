from __future__ import annotations

import logging
from typing import Protocol

from src.codegen.models import ChangeDecision, Proceed, Skip

logger = logging.getLogger(__name__)

NO_CHANGES_DETECTED = "No changes detected."


class ChangeComparer(Protocol):
    def compare(self, old_text: str, new_text: str) -> str:
        raise NotImplementedError


class ChangeGate:
    """Decides whether a change request differs from the last one processed.

    Only the exact sentinel ``No changes detected.`` (after trimming) skips the
    run. Any other comparer output is the changelog of a run that proceeds.
    """

    def __init__(self, comparer: ChangeComparer) -> None:
        self.comparer = comparer

    def evaluate(self, old_text: str, new_text: str) -> ChangeDecision:
        if old_text:
            logger.info("[gate] comparing against the previous change request")
        else:
            logger.info("[gate] no previous change request; initial analysis")
        changelog = self.comparer.compare(old_text, new_text) or ""
        if changelog.strip() == NO_CHANGES_DETECTED:
            logger.info("[gate] no functional changes detected")
            return Skip()
        return Proceed(changelog=changelog)

    def should_proceed(self, old_text: str, new_text: str) -> bool:
        return isinstance(self.evaluate(old_text, new_text), Proceed)
