# tests/test_bootstrap.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pulse_scheduler.cli.bootstrap import create_initial_state, create_scheduler
from pulse_scheduler.config import Settings
from pulse_scheduler.llm.offline import OfflineLLMClient

from .conftest import make_task


@pytest.fixture()
def clean_env(monkeypatch, tmp_path: Path):
    for name in (
        "PULSE_LLM_API_KEY",
        "GEMINI_API_KEY",
        "API_KEY",
        "PORT",
        "PULSE_API_PORT",
        "PULSE_TASKS_PATH",
        "PULSE_ACTION_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PULSE_DATA_DIR", str(tmp_path / "data"))
    return monkeypatch


def test_settings_from_env(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("PULSE_LLM_MODELS", "model-a, model-b")
    clean_env.setenv("PULSE_TICK_SECONDS", "0")
    clean_env.setenv("PULSE_API_PORT", "not-a-port")
    clean_env.setenv("GEMINI_API_KEY", "k")

    s = Settings.from_env()

    assert s.llm_models == ["model-a", "model-b"]
    assert s.tick_seconds == 0.05
    assert s.api_port == 3000
    assert s.llm_api_key == "k"
    assert s.tasks_path == tmp_path / "data" / "tasks.json"


def test_initial_state_without_llm_key_loads_tasks(clean_env, tmp_path: Path, t0) -> None:
    tasks_file = tmp_path / "data" / "tasks.json"
    tasks_file.parent.mkdir(parents=True)
    tasks_file.write_text(json.dumps([make_task(next_run=t0, task_id="persisted").to_dict()]), "utf-8")

    state = create_initial_state(settings=Settings.from_env())
    try:
        assert isinstance(state.llm, OfflineLLMClient)
        assert state.task_store.get("persisted") is not None

        scheduler = create_scheduler(state)
        assert scheduler.action_timeout_s == 60.0
        assert scheduler.sink == state.record_firing
    finally:
        state.task_store.close()
