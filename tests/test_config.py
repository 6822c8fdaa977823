"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from brokerimport.config import (
    Settings,
    find_settings_file,
    load_settings,
    settings_file_names,
)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BROKERIMPORT_PROFILE", raising=False)
    return tmp_path


class TestDefaults:
    def test_defaults(self):
        settings = Settings()
        assert settings.parser.timezone == "Europe/Berlin"
        assert settings.parser.price_tolerance == 0.01
        assert settings.parser.reject_future_dates is True
        assert settings.ingestion.supported_formats == [".pdf", ".csv"]
        assert settings.logging.level == "INFO"


class TestLoadSettings:
    def test_yaml_overrides(self, workdir: Path):
        (workdir / "settings.yaml").write_text(
            "parser:\n  timezone: UTC\n  reject_future_dates: false\nlogging:\n  level: DEBUG\n",
            encoding="utf-8",
        )
        settings = load_settings()
        assert settings.parser.timezone == "UTC"
        assert settings.parser.reject_future_dates is False
        assert settings.logging.level == "DEBUG"
        # Untouched sections keep their defaults.
        assert settings.ingestion.max_file_size_mb == 25

    def test_found_in_parent_directory(self, workdir: Path, monkeypatch: pytest.MonkeyPatch):
        (workdir / "settings.yaml").write_text("logging:\n  level: WARNING\n", encoding="utf-8")
        nested = workdir / "statements" / "2021"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert load_settings().logging.level == "WARNING"

    def test_empty_file(self, workdir: Path):
        (workdir / "settings.yaml").write_text("", encoding="utf-8")
        assert load_settings() == Settings()

    def test_profile(self, workdir: Path, monkeypatch: pytest.MonkeyPatch):
        (workdir / "settings.yaml").write_text("logging:\n  level: INFO\n", encoding="utf-8")
        (workdir / "settings-ci.yaml").write_text("logging:\n  level: ERROR\n", encoding="utf-8")
        monkeypatch.setenv("BROKERIMPORT_PROFILE", "ci")
        assert load_settings().logging.level == "ERROR"

    def test_profile_falls_back_to_default_file(
        self, workdir: Path, monkeypatch: pytest.MonkeyPatch
    ):
        (workdir / "settings.yaml").write_text("logging:\n  level: WARNING\n", encoding="utf-8")
        monkeypatch.setenv("BROKERIMPORT_PROFILE", "missing")
        assert load_settings().logging.level == "WARNING"

    def test_closer_default_file_wins_over_parent_profile(
        self, workdir: Path, monkeypatch: pytest.MonkeyPatch
    ):
        (workdir / "settings-ci.yaml").write_text("logging:\n  level: ERROR\n", encoding="utf-8")
        nested = workdir / "statements"
        nested.mkdir()
        (nested / "settings.yaml").write_text("logging:\n  level: DEBUG\n", encoding="utf-8")
        monkeypatch.chdir(nested)
        monkeypatch.setenv("BROKERIMPORT_PROFILE", "ci")
        assert load_settings().logging.level == "DEBUG"

    def test_explicit_path(self, workdir: Path):
        path = workdir / "custom.yaml"
        path.write_text("parser:\n  timezone: UTC\n", encoding="utf-8")
        assert load_settings(path).parser.timezone == "UTC"

    def test_explicit_path_missing(self, workdir: Path):
        with pytest.raises(FileNotFoundError):
            load_settings(workdir / "missing.yaml")


class TestFindSettingsFile:
    def test_profile_file_preferred(self, workdir: Path, monkeypatch: pytest.MonkeyPatch):
        (workdir / "settings.yaml").write_text("", encoding="utf-8")
        (workdir / "settings-ci.yaml").write_text("", encoding="utf-8")
        monkeypatch.setenv("BROKERIMPORT_PROFILE", "ci")
        assert find_settings_file(workdir) == (workdir / "settings-ci.yaml").resolve()

    def test_from_start_directory(self, workdir: Path):
        (workdir / "settings.yaml").write_text("", encoding="utf-8")
        nested = workdir / "a" / "b"
        nested.mkdir(parents=True)
        assert find_settings_file(nested) == (workdir / "settings.yaml").resolve()

    def test_file_names(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("BROKERIMPORT_PROFILE", raising=False)
        assert settings_file_names() == ("settings.yaml",)
        assert settings_file_names("ci") == ("settings-ci.yaml", "settings.yaml")
