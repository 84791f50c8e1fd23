"""
Tests for the command line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from pcbooking.cli.app import app

runner = CliRunner()

FUTURE_DAY = "2099-01-10"


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"database_url: sqlite:///{tmp_path / 'bookings.db'}\n"
        "log_level: WARNING\n"
        "resources:\n"
        "  - id: '1'\n"
        "    name: PC-1\n"
        "  - id: '2'\n"
        "    name: PC-2\n",
        encoding="utf-8",
    )
    return str(path)


def _book(config_path, resource="1", start="10:00", end="10:30", name="Alice"):
    return runner.invoke(
        app,
        ["book", resource, "-d", FUTURE_DAY, "-s", start, "-e", end, "-n", name, "-c", config_path],
    )


def _day_json(config_path):
    result = runner.invoke(app, ["day", "-d", FUTURE_DAY, "--json", "-c", config_path])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestCli:
    """Tests for the pcbooking CLI."""

    def test_resources(self, config_path):
        result = runner.invoke(app, ["resources", "-c", config_path])

        assert result.exit_code == 0
        assert "PC-1" in result.output
        assert "PC-2" in result.output

    def test_book_and_list_day(self, config_path):
        result = _book(config_path)

        assert result.exit_code == 0, result.output
        items = _day_json(config_path)
        assert len(items) == 1
        assert items[0]["start"] == "2099-01-10T01:00:00Z"
        assert items[0]["resource_name"] == "PC-1"

    def test_overlap_exits_with_error(self, config_path):
        _book(config_path)

        result = _book(config_path, start="10:20", end="10:40", name="Bob")

        assert result.exit_code == 1
        assert "overlap_conflict" in result.output
        assert len(_day_json(config_path)) == 1

    def test_book_by_resource_name(self, config_path):
        result = _book(config_path, resource="pc-2")

        assert result.exit_code == 0, result.output
        assert _day_json(config_path)[0]["resource_id"] == "2"

    def test_unaligned_time_rejected(self, config_path):
        result = _book(config_path, start="10:05")

        assert result.exit_code == 1

    def test_unknown_resource(self, config_path):
        result = _book(config_path, resource="9")

        assert result.exit_code == 1
        assert "Unknown resource" in result.output

    def test_update_and_cancel(self, config_path):
        _book(config_path)
        reservation_id = _day_json(config_path)[0]["id"]

        result = runner.invoke(
            app, ["update", reservation_id, "-n", "Alice2", "-e", "11:00", "-c", config_path]
        )
        assert result.exit_code == 0, result.output
        updated = _day_json(config_path)[0]
        assert updated["holder_name"] == "Alice2"
        assert updated["end"] == "2099-01-10T02:00:00Z"

        result = runner.invoke(app, ["cancel", reservation_id, "--yes", "-c", config_path])
        assert result.exit_code == 0, result.output
        assert _day_json(config_path) == []

    def test_cancel_unknown(self, config_path):
        result = runner.invoke(app, ["cancel", "missing", "--yes", "-c", config_path])

        assert result.exit_code == 1
        assert "not_found" in result.output

    def test_all_json(self, config_path):
        _book(config_path)
        _book(config_path, start="12:00", end="12:30", name="Bob")

        result = runner.invoke(app, ["all", "--json", "-c", config_path])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["total_count"] == 2
        assert [r["holder_name"] for r in data["reservations"]] == ["Bob", "Alice"]
        assert list(data["by_date"]) == [FUTURE_DAY]

    def test_grid(self, config_path):
        _book(config_path)

        result = runner.invoke(app, ["grid", "-d", FUTURE_DAY, "--from-hour", "10", "--to-hour", "11", "-c", config_path])

        assert result.exit_code == 0, result.output
        assert "PC-1" in result.output

    def test_purge(self, config_path):
        result = runner.invoke(app, ["purge", "-c", config_path])

        assert result.exit_code == 0
        assert "0 past reservation(s) removed" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
