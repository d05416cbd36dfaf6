"""Tests for settings loading and validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from aecmesh.config import ParserSettings, describe_settings, load_settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, _, _ in describe_settings():
        monkeypatch.delenv(key, raising=False)


def _write_config(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "aecmesh.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoadSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        settings = load_settings()
        assert settings == ParserSettings()
        assert settings.workers == 1
        assert settings.strict is False
        assert settings.progress_chunk_bytes == 1 << 20

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        monkeypatch.setenv("AECMESH_STRICT", "true")
        monkeypatch.setenv("AECMESH_WORKERS", "4")
        monkeypatch.setenv("AECMESH_UNIT_SCALE", "false")
        settings = load_settings()
        assert settings.strict is True
        assert settings.workers == 4
        assert settings.apply_unit_scale is False

    def test_config_file_field_names(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        path = _write_config(tmp_path, {"extract_properties": False, "workers": 3})
        settings = load_settings(path)
        assert settings.extract_properties is False
        assert settings.workers == 3

    def test_config_file_env_keys(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        path = _write_config(tmp_path, {"AECMESH_PROGRESS_CHUNK": 4096})
        assert load_settings(path).progress_chunk_bytes == 4096

    def test_environment_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        monkeypatch.setenv("AECMESH_WORKERS", "8")
        path = _write_config(tmp_path, {"workers": 2})
        assert load_settings(path).workers == 8

    def test_broken_file_ignored(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_settings(path) == ParserSettings()

    def test_missing_file_ignored(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        assert load_settings(tmp_path / "absent.json") == ParserSettings()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    def test_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            ParserSettings(workers=0)

    def test_chunk_must_be_positive(self):
        with pytest.raises(ValidationError):
            ParserSettings(progress_chunk_bytes=0)

    def test_invalid_environment_value(self, monkeypatch: pytest.MonkeyPatch):
        _clear_env(monkeypatch)
        monkeypatch.setenv("AECMESH_WORKERS", "many")
        with pytest.raises(ValidationError):
            load_settings()

    def test_describe_settings(self):
        keys = [key for key, _, _ in describe_settings()]
        assert "AECMESH_STRICT" in keys
        assert "AECMESH_WORKERS" in keys
        assert all(description for _, _, description in describe_settings())
