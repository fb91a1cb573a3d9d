# tests/test_settings.py

import os

import pytest

from exam_core.settings import EngineSettings, load_settings, trap_range_from_env


def test_defaults(tmp_path):
    settings = load_settings(env_path=str(tmp_path / "missing.env"))
    assert settings == EngineSettings()
    assert settings.gate.pass_score == 70


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("EXAM_CORE_PASS_SCORE", "80")
    monkeypatch.setenv("EXAM_CORE_MAX_SUBJECT_RUN", "3")
    monkeypatch.setenv("EXAM_CORE_WEAK_UPLIFT", "0.2")
    settings = load_settings(env_path=str(tmp_path / "missing.env"))

    assert settings.gate.pass_score == 80
    assert settings.sequencing.max_subject_run == 3
    assert settings.adaptive.weak_uplift == 0.2


def test_env_file_is_read(tmp_path):
    env = tmp_path / ".env"
    env.write_text("EXAM_CORE_MAX_ITERATIONS=1234\n", encoding="utf-8")
    try:
        settings = load_settings(env_path=str(env))
        assert settings.sequencing.max_iterations == 1234
    finally:
        os.environ.pop("EXAM_CORE_MAX_ITERATIONS", None)


def test_bad_number_is_reported(monkeypatch, tmp_path):
    monkeypatch.setenv("EXAM_CORE_PASS_SCORE", "high")
    with pytest.raises(ValueError):
        load_settings(env_path=str(tmp_path / "missing.env"))


def test_trap_range_override(monkeypatch):
    monkeypatch.setenv("EXAM_CORE_TRAP_MIN", "0.05")
    monkeypatch.delenv("EXAM_CORE_TRAP_MAX", raising=False)
    assert trap_range_from_env() == (0.05, 0.12)
