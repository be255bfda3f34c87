from __future__ import annotations

from pathlib import Path

from src.adapters.llm_base import LLMResponse
from src.adapters.mock_adapter import MockAdapter
from src.oracles.llm_oracles import (
    ChangeComparisonOracle,
    DiagnosisOracle,
    GenerationOracle,
    MergeOracle,
    RepairOracle,
)


def test_each_oracle_sends_its_task_template(prompts_dir: Path):
    adapter = MockAdapter()
    GenerationOracle(adapter, prompts_dir).generate("request", "changelog", "a.py")
    DiagnosisOracle(adapter, prompts_dir).diagnose("log")
    RepairOracle(adapter, prompts_dir).repair("log", "analysis", "sources")
    MergeOracle(adapter, prompts_dir).merge("old", "new")
    ChangeComparisonOracle(adapter, prompts_dir).compare("old", "new")

    for task in ("code_generation", "build_diagnosis", "build_repair", "code_merge", "change_analysis"):
        assert adapter.calls(task) == 1


def test_previous_diagnosis_is_included_only_when_present(prompts_dir: Path):
    adapter = MockAdapter()
    oracle = DiagnosisOracle(adapter, prompts_dir)
    oracle.diagnose("log")
    oracle.diagnose("log", "earlier analysis")
    assert "PREVIOUS ANALYSIS" not in adapter.prompts[0]
    assert "--- PREVIOUS ANALYSIS ---\nearlier analysis\n--- END PREVIOUS ANALYSIS ---" in adapter.prompts[1]


def test_mock_merge_returns_new_content(prompts_dir: Path):
    merged = MergeOracle(MockAdapter(), prompts_dir).merge("old body", "new body")
    assert merged == "new body"


def test_raw_responses_are_captured(prompts_dir: Path, tmp_path: Path):
    class UsageAdapter:
        def complete(self, prompt: str) -> LLMResponse:
            return LLMResponse(raw_text="analysis", usage={"total_tokens": 12})

    oracle = DiagnosisOracle(UsageAdapter(), prompts_dir, raw_dir=tmp_path)
    assert oracle.diagnose("log") == "analysis"
    assert (tmp_path / "build_diagnosis_01.txt").read_text(encoding="utf-8") == "analysis"
    assert (tmp_path / "build_diagnosis_01_usage.json").exists()


def test_scripted_mock_responses_are_consumed_in_order(prompts_dir: Path):
    adapter = MockAdapter(scripted={"build_diagnosis": ["one", "two"]})
    oracle = DiagnosisOracle(adapter, prompts_dir)
    assert [oracle.diagnose("log") for _ in range(3)] == [
        "one",
        "two",
        "The build command failed. Review the transcript for the first error.",
    ]
