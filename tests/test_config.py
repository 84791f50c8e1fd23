"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from pcbooking.config import AppConfig


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "Asia/Tokyo"
        assert [r.id for r in config.resources] == ["1", "2"]
        assert len(config.build_grid()) == 144
        assert config.build_long_press_gate().hold_ms == 500

    def test_load_from_yaml(self, tmp_path):
        path = _write(
            tmp_path,
            "timezone: Europe/Berlin\n"
            "log_level: debug\n"
            "grid:\n"
            "  slot_minutes: 15\n"
            "resources:\n"
            "  - id: a\n"
            "    name: Lab A\n",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.log_level == "DEBUG"
        assert config.build_grid().timezone == "Europe/Berlin"
        assert len(config.build_grid()) == 96
        assert config.resolve_resource("lab a") == "a"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(_write(tmp_path, "- one\n- two\n"))

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            AppConfig(timezone="Mars/Olympus")

    def test_bad_slot_width(self):
        with pytest.raises(ValidationError):
            AppConfig(grid={"slot_minutes": 7})

    def test_duplicate_resources(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            AppConfig(resources=[{"id": "1", "name": "A"}, {"id": "2", "name": "a"}])

    def test_unknown_resource(self):
        with pytest.raises(ValueError, match="known ids: 1, 2"):
            AppConfig().resolve_resource("9")
