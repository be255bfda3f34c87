from __future__ import annotations

from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture()
def prompts_dir() -> Path:
    return PROJECT_ROOT / "configs" / "prompts"


@pytest.fixture()
def schemas_dir() -> Path:
    return PROJECT_ROOT / "schemas"


@pytest.fixture()
def work_tree(tmp_path: Path) -> Path:
    root = tmp_path / "tree"
    root.mkdir()
    return root
