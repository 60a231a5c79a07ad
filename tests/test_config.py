"""Tests for settings and utility helpers."""

import json
from datetime import datetime, timedelta, timezone

import pytest

import mod_updater
from mod_updater import constants
from mod_updater.config import UpdaterConfig
from mod_updater.utils import (
    UpdateUnit, format_size, normalize_relative_path, resolve_mod_file, update_check_due
)


@pytest.fixture(autouse=True)
def no_token_env(monkeypatch):
    monkeypatch.delenv(constants.GITHUB_TOKEN_ENV, raising=False)


class TestUpdaterConfig:
    """Test settings loading and saving."""

    def test_defaults_without_file(self, tmp_path) -> None:
        """Test that a missing file yields defaults."""
        config = UpdaterConfig.load(str(tmp_path / "missing.json"))
        assert config == UpdaterConfig()
        assert config.timeout == constants.DEFAULT_TIMEOUT
        assert config.mods_dir == "mods"

    def test_user_agent_carries_package_version(self) -> None:
        """Test that the default User-Agent names the installed version."""
        assert UpdaterConfig().user_agent == f"mod-updater/{mod_updater.__version__} (Python)"

    def test_file_values_override_defaults(self, tmp_path) -> None:
        """Test that known keys are applied and unknown keys ignored."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"timeout": 30, "report_not_found": True, "colour": "blue"}))
        config = UpdaterConfig.load(str(path))
        assert config.timeout == 30
        assert config.report_not_found is True
        assert not hasattr(config, "colour")

    def test_invalid_file_is_ignored(self, tmp_path) -> None:
        """Test that unparseable settings fall back to defaults."""
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert UpdaterConfig.load(str(path)) == UpdaterConfig()

    def test_token_from_environment(self, tmp_path, monkeypatch) -> None:
        """Test that the environment token wins over the file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"github_token": "from-file"}))
        monkeypatch.setenv(constants.GITHUB_TOKEN_ENV, "from-env")
        assert UpdaterConfig.load(str(path)).github_token == "from-env"

    def test_save_and_load(self, tmp_path) -> None:
        """Test that saved settings load back."""
        path = tmp_path / "nested" / "config.json"
        UpdaterConfig(retries=5, mods_dir="Mods").save(str(path))
        config = UpdaterConfig.load(str(path))
        assert config.retries == 5
        assert config.mods_dir == "Mods"


class TestPaths:
    """Test path helpers."""

    @pytest.mark.parametrize("raw, expected", [
        ("Data\\Sprites\\Player.gif", "Data/Sprites/Player.gif"),
        ("./Data//Game.bin", "Data/Game.bin"),
        ("/mod.ini", "mod.ini"),
        ("Data/./x", "Data/x"),
    ])
    def test_normalize_relative_path(self, raw, expected) -> None:
        assert normalize_relative_path(raw) == expected

    def test_case_insensitive_lookup(self, tmp_path) -> None:
        """Test that a listed file is found regardless of case."""
        (tmp_path / "Data").mkdir()
        (tmp_path / "Data" / "Game.bin").write_bytes(b"x")
        resolved = resolve_mod_file(str(tmp_path), "data/GAME.BIN")
        assert resolved == str(tmp_path / "Data" / "Game.bin")

    def test_exact_match_wins(self, tmp_path) -> None:
        """Test that a file whose case matches is used as written."""
        (tmp_path / "mod.ini").write_bytes(b"x")
        assert resolve_mod_file(str(tmp_path), "./mod.ini") == str(tmp_path / "mod.ini")

    def test_missing_component_is_kept(self, tmp_path) -> None:
        """Test that unmatched components keep their spelling below the mod folder."""
        (tmp_path / "Data").mkdir()
        resolved = resolve_mod_file(str(tmp_path), "DATA/Missing/File.bin")
        assert resolved == str(tmp_path / "Data" / "Missing" / "File.bin")

    def test_lookup_stays_inside_mod_folder(self, tmp_path) -> None:
        """Test that the mod folder itself is never re-cased."""
        (tmp_path / "Mod").mkdir()
        (tmp_path / "Mod" / "a.txt").write_bytes(b"x")
        mod_dir = str(tmp_path / "mod")
        assert resolve_mod_file(mod_dir, "a.txt") == str(tmp_path / "mod" / "a.txt")

    @pytest.mark.parametrize("size_bytes, expected", [
        (0, "0 B"),
        (512, "512 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (3 * 1024 ** 5, "3072.0 TB"),
    ])
    def test_format_size(self, size_bytes, expected) -> None:
        assert format_size(size_bytes) == expected


class TestUpdateCheckDue:
    """Test update_check_due."""

    NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    def test_always(self) -> None:
        assert update_check_due(UpdateUnit.ALWAYS, 0, self.NOW, self.NOW)

    def test_never_checked(self) -> None:
        assert update_check_due(UpdateUnit.WEEKS, 4, None, self.NOW)

    @pytest.mark.parametrize("unit, amount, elapsed, due", [
        (UpdateUnit.HOURS, 6, timedelta(hours=5), False),
        (UpdateUnit.HOURS, 6, timedelta(hours=6), True),
        (UpdateUnit.DAYS, 1, timedelta(hours=23), False),
        (UpdateUnit.DAYS, 1, timedelta(days=2), True),
        (UpdateUnit.WEEKS, 2, timedelta(days=13), False),
        (UpdateUnit.WEEKS, 2, timedelta(days=14), True),
    ])
    def test_intervals(self, unit, amount, elapsed, due) -> None:
        assert update_check_due(unit, amount, self.NOW - elapsed, self.NOW) is due

    def test_naive_timestamps_are_utc(self) -> None:
        """Test that naive datetimes are treated as UTC."""
        last = datetime(2024, 5, 10, 11, 0)
        assert update_check_due(UpdateUnit.HOURS, 1, last, self.NOW)
