from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from src.adapters.gemini_adapter import GeminiAdapter
from src.adapters.llm_base import LLMAdapter
from src.adapters.mock_adapter import MockAdapter
from src.adapters.openai_adapter import OpenAIAdapter
from src.artifacts.writers import (
    read_snapshot,
    write_changelog,
    write_failure_analysis,
    write_snapshot,
)
from src.codegen.models import HealingResult, Proceed, RunContext
from src.codegen.mutator import FileMutator
from src.codegen.parser import parse
from src.gates.change_gate import ChangeGate
from src.gates.runner import BuildVerifier
from src.healing.loop import SelfHealingLoop
from src.healing.snapshot import collect_sources, list_project_files
from src.oracles.llm_oracles import (
    ChangeComparisonOracle,
    DiagnosisOracle,
    GenerationOracle,
    MergeOracle,
    RepairOracle,
)
from src.utils.config import ChangeRequest
from src.utils.io import write_json
from src.vcs.git_client import GitClient

logger = logging.getLogger(__name__)

FAILED_COMMIT_PREFIX = "fix(ai): [BUILD FAILED] "


@dataclass
class PipelineReport:
    status: str
    branch: Optional[str] = None
    changelog: str = ""
    generated_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    healing: Optional[HealingResult] = None
    committed: bool = False
    pushed: bool = False

    def to_dict(self) -> Dict[str, object]:
        healing: Optional[Dict[str, object]] = None
        if self.healing is not None:
            healing = {
                "status": self.healing.status.value,
                "reason": self.healing.reason.value if self.healing.reason else None,
                "attempts": self.healing.attempts,
                "verify_calls": self.healing.verify_calls,
            }
        return {
            "status": self.status,
            "branch": self.branch,
            "generated_files": self.generated_files,
            "failed_files": self.failed_files,
            "healing": healing,
            "committed": self.committed,
            "pushed": self.pushed,
        }


class CodePipeline:
    """Generate, apply, verify and heal one change request in one working tree."""

    def __init__(
        self,
        mode: str,
        base_dir: Path,
        provider: str = "gemini",
        adapter: Optional[LLMAdapter] = None,
        verifier: Optional[BuildVerifier] = None,
    ) -> None:
        self.mode = mode
        self.base_dir = base_dir
        self.provider = provider
        self.prompts_dir = base_dir / "configs" / "prompts"
        self._adapter_override = adapter
        self._verifier_override = verifier

    def run(self, request: ChangeRequest, context: RunContext) -> PipelineReport:
        root = context.repo_path
        raw_dir = context.run_dir / "raw"
        artifacts_dir = context.run_dir / "artifacts"
        quality_dir = context.run_dir / "quality_gates"
        for path in (root, raw_dir, artifacts_dir, quality_dir):
            path.mkdir(parents=True, exist_ok=True)

        adapter = self._adapter()
        comparer = ChangeComparisonOracle(adapter, self.prompts_dir, raw_dir)
        generator = GenerationOracle(adapter, self.prompts_dir, raw_dir)
        diagnoser = DiagnosisOracle(adapter, self.prompts_dir, raw_dir)
        repairer = RepairOracle(adapter, self.prompts_dir, raw_dir)
        merger = MergeOracle(adapter, self.prompts_dir, raw_dir)

        decision = ChangeGate(comparer).evaluate(read_snapshot(root), request.body)
        if not isinstance(decision, Proceed):
            logger.info("[pipeline] change request unchanged; nothing to do")
            report = PipelineReport(status="skipped")
            write_json(artifacts_dir / "run_summary.json", report.to_dict())
            return report

        git = GitClient(root)
        use_git = git.is_repository()
        if use_git:
            context = replace(context, feature_branch=git.create_feature_branch(context.issue_key))
        else:
            logger.info("[pipeline] %s is not a git repository; changes will not be committed", root)

        raw_output = generator.generate(
            request.body,
            decision.changelog,
            list_project_files(root),
            collect_sources(root, context.source_suffixes),
        )
        batch = parse(raw_output)
        mutator = FileMutator(root, merger)
        failures = mutator.apply_batch(batch)
        failed_paths = [failure.operation.path for failure in failures]
        report = PipelineReport(
            status="pending",
            branch=context.feature_branch,
            changelog=decision.changelog,
            generated_files=[op.path for op in batch if op.path not in failed_paths],
            failed_files=failed_paths,
        )

        loop = SelfHealingLoop(
            root=root,
            verifier=self._verifier(context, quality_dir),
            diagnoser=diagnoser,
            repairer=repairer,
            mutator=mutator,
            sources=lambda: collect_sources(root, context.source_suffixes),
            max_attempts=context.max_attempts,
        )
        result = loop.run()
        report.healing = result

        write_changelog(root, decision.changelog, context.feature_branch)
        write_snapshot(root, request.body)
        commit_message = self._commit_summary(request, context)
        if result.succeeded:
            report.status = "succeeded"
            self._remove_build_outputs(root, context)
            if use_git:
                for entry in context.clean_paths:
                    git.add_gitignore_entry(f"{entry.rstrip('/')}/")
        else:
            report.status = "failed"
            analysis = write_failure_analysis(root, result)
            logger.error("[pipeline] self-healing did not converge; analysis written to %s", analysis.name)
            commit_message = FAILED_COMMIT_PREFIX + commit_message

        if use_git:
            report.committed = git.commit_all(commit_message)
            if context.push and context.feature_branch:
                git.push(context.feature_branch)
                report.pushed = True

        write_json(artifacts_dir / "run_summary.json", report.to_dict())
        return report

    def _adapter(self) -> LLMAdapter:
        if self._adapter_override is not None:
            return self._adapter_override
        if self.mode == "mock":
            return MockAdapter()
        if self.provider == "openai":
            return OpenAIAdapter()
        return GeminiAdapter()

    def _verifier(self, context: RunContext, quality_dir: Path) -> BuildVerifier:
        if self._verifier_override is not None:
            return self._verifier_override
        return BuildVerifier(context.build_commands, log_dir=quality_dir)

    def _commit_summary(self, request: ChangeRequest, context: RunContext) -> str:
        first_line = next((line.strip("# ").strip() for line in request.body.splitlines() if line.strip()), "")
        summary = first_line[:72] or "apply change request"
        return f"feat({context.issue_key}): {summary}"

    def _remove_build_outputs(self, root: Path, context: RunContext) -> None:
        for entry in context.clean_paths:
            target = (root / entry).resolve()
            if root.resolve() not in target.parents:
                logger.warning("[pipeline] refusing to delete %s outside the working tree", entry)
                continue
            if target.is_dir():
                logger.info("[pipeline] deleting build output %s before commit", entry)
                shutil.rmtree(target)
