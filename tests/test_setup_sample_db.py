"""Tests for the sample database helper script."""

from __future__ import annotations

import importlib.util
import subprocess
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "setup_sample_db.py"


@pytest.fixture
def script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("setup_sample_db", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_wait_for_start_checks_configured_user(script: ModuleType, monkeypatch: pytest.MonkeyPatch) -> None:
    commands: list[list[str]] = []

    def _run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(script.subprocess, "run", _run)

    script.wait_for_start("sample", "reporter", retries=1, delay=0)

    assert commands == [["docker", "exec", "sample", "pg_isready", "-U", "reporter"]]


def test_start_container_waits_for_configured_user(script: ModuleType, monkeypatch: pytest.MonkeyPatch) -> None:
    waited: list[tuple[str, str]] = []
    monkeypatch.setattr(script, "container_exists", lambda name: False)
    monkeypatch.setattr(script, "run", lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0))
    monkeypatch.setattr(script, "wait_for_start", lambda name, user: waited.append((name, user)))

    script.start_container("sample", 5543, "secret", "demo", "reporter")

    assert waited == [("sample", "reporter")]


def test_seed_data_inserts_visits_only_once(script: ModuleType, monkeypatch: pytest.MonkeyPatch) -> None:
    inputs: list[str] = []

    def _run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        inputs.append(kwargs["input"])
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(script, "run", _run)

    script.seed_data("sample", "demo", "reporter")

    (sql,) = inputs
    visits_insert = sql[sql.index("INSERT INTO visits") :]
    assert "WHERE NOT EXISTS" in visits_insert
    assert "UNIQUE (person_id, park)" in sql
