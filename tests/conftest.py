from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    # Keep `import pagesmith` working when running `pytest` from the repo root.
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


@pytest.fixture
def settings():
    from pagesmith.config import Settings

    return Settings(
        _env_file=None,
        ai_backend="openai",
        ai_api_key="test-key",
        ai_api_base="http://model.test/v1",
        ai_model="gpt-test",
        reasoning_models=["deepseek", "qwen"],
    )
