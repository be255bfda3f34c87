from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

from src.codegen.models import (
    AbortReason,
    BuildOutcome,
    GeneratedBatch,
    HealingAttempt,
    HealingResult,
    HealingStatus,
)
from src.codegen.mutator import FileMutator
from src.codegen.parser import parse

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10


class Verifier(Protocol):
    def verify(self, root: Path) -> BuildOutcome:
        raise NotImplementedError


class Diagnoser(Protocol):
    def diagnose(self, transcript: str, previous: str = "") -> str:
        raise NotImplementedError


class Repairer(Protocol):
    def repair(self, transcript: str, analysis: str, sources: str) -> str:
        raise NotImplementedError


class HealingState(Enum):
    VERIFYING = "verifying"
    HEALING = "healing"
    APPLYING = "applying"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


class SelfHealingLoop:
    """Verify, diagnose, repair and re-verify one working tree.

    The first state is VERIFYING, so a tree that already builds costs one
    verify call and no oracle calls. Every failed verify spends one attempt;
    the loop makes at most ``max_attempts + 1`` verify calls. A run ends
    SUCCEEDED or ABORTED (stagnated diagnosis, empty repair, exhausted
    budget). Oracle errors propagate to the caller.
    """

    def __init__(
        self,
        root: Path,
        verifier: Verifier,
        diagnoser: Diagnoser,
        repairer: Repairer,
        mutator: FileMutator,
        sources: Callable[[], str],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must not be negative")
        self.root = Path(root)
        self.verifier = verifier
        self.diagnoser = diagnoser
        self.repairer = repairer
        self.mutator = mutator
        self.sources = sources
        self.max_attempts = max_attempts

    def run(self) -> HealingResult:
        state = HealingState.VERIFYING
        attempts = 0
        outcome = self.verifier.verify(self.root)
        verify_calls = 1
        previous_diagnosis = ""
        last_attempt: Optional[HealingAttempt] = None
        batch: GeneratedBatch = []
        reason: Optional[AbortReason] = None

        while state not in (HealingState.SUCCEEDED, HealingState.ABORTED):
            if state is HealingState.VERIFYING:
                if outcome.success:
                    logger.info("[heal] build succeeded after %d verify call(s)", verify_calls)
                    state = HealingState.SUCCEEDED
                elif attempts >= self.max_attempts:
                    logger.error("[heal] retry budget of %d attempt(s) exhausted", self.max_attempts)
                    reason = AbortReason.EXHAUSTED
                    state = HealingState.ABORTED
                else:
                    attempts += 1
                    logger.error("[heal] build failed; starting healing attempt %d/%d", attempts, self.max_attempts)
                    state = HealingState.HEALING

            elif state is HealingState.HEALING:
                diagnosis = self.diagnoser.diagnose(outcome.transcript, previous_diagnosis)
                last_attempt = HealingAttempt(number=attempts, diagnosis=diagnosis, outcome=outcome)
                if attempts > 1 and diagnosis == previous_diagnosis:
                    logger.warning("[heal] diagnosis identical to the previous one; stopping")
                    reason = AbortReason.STAGNATED
                    state = HealingState.ABORTED
                    continue
                previous_diagnosis = diagnosis
                corrected = self.repairer.repair(outcome.transcript, diagnosis, self.sources())
                batch = parse(corrected) if corrected and corrected.strip() else []
                if not batch:
                    logger.error("[heal] repair produced no file operations; stopping")
                    reason = AbortReason.EMPTY_REPAIR
                    state = HealingState.ABORTED
                else:
                    logger.info("[heal] applying %d corrected file(s)", len(batch))
                    state = HealingState.APPLYING

            elif state is HealingState.APPLYING:
                failures = self.mutator.apply_batch(batch)
                if failures:
                    logger.warning("[heal] %d of %d operation(s) could not be applied", len(failures), len(batch))
                batch = []
                outcome = self.verifier.verify(self.root)
                verify_calls += 1
                state = HealingState.VERIFYING

        if state is HealingState.SUCCEEDED:
            return HealingResult(
                status=HealingStatus.SUCCEEDED,
                verify_calls=verify_calls,
                attempts=attempts,
                last_attempt=last_attempt,
                last_diagnosis=previous_diagnosis,
            )
        return HealingResult(
            status=HealingStatus.ABORTED,
            verify_calls=verify_calls,
            attempts=attempts,
            reason=reason,
            last_attempt=last_attempt,
            last_transcript=outcome.transcript,
            last_diagnosis=last_attempt.diagnosis if last_attempt else "",
        )
