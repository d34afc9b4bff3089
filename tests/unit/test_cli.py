"""
Integration tests for CLI commands.

Tests the basic functionality of CLI commands and error handling.
"""

import json

import pytest
from typer.testing import CliRunner

from vaultstats.cli import app

runner = CliRunner()


@pytest.fixture
def vault_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("VAULTSTATS_LOGGING_LEVEL", "WARNING")
    monkeypatch.delenv("VAULTSTATS_COLLECTOR_EXCLUDE_DIRECTORIES", raising=False)
    (tmp_path / "a.md").write_text("# Home\n\nSee [[b]] and #tag", encoding="utf-8")
    (tmp_path / "b.md").write_text("just words here", encoding="utf-8")
    (tmp_path / "archive").mkdir()
    (tmp_path / "archive" / "old.md").write_text("old stuff", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x00" * 2048)
    (tmp_path / ".obsidian").mkdir()
    (tmp_path / ".obsidian" / "app.json").write_text("{}", encoding="utf-8")
    return tmp_path


class TestCLIHelp:
    """Test CLI help and usage information."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "scan" in result.stdout
        assert "watch" in result.stdout
        assert "config" in result.stdout

    def test_scan_help(self):
        result = runner.invoke(app, ["scan", "--help"])

        assert result.exit_code == 0
        assert "--exclude" in result.stdout
        assert "--json" in result.stdout


class TestScan:
    def test_json_totals(self, vault_dir):
        result = runner.invoke(app, ["scan", str(vault_dir), "--json"])

        assert result.exit_code == 0
        totals = json.loads(result.stdout)
        assert totals["files"] == 4
        assert totals["notes"] == 3
        assert totals["attachments"] == 1
        assert totals["links"] == 1
        assert totals["tags"] == 1
        assert totals["words"] == 1 + 4 + 3 + 2

    def test_exclude_option(self, vault_dir):
        result = runner.invoke(app, ["scan", str(vault_dir), "--json", "--exclude", "archive"])

        assert result.exit_code == 0
        totals = json.loads(result.stdout)
        assert totals["notes"] == 2
        assert totals["files"] == 3

    def test_table_output(self, vault_dir):
        result = runner.invoke(app, ["scan", str(vault_dir)])

        assert result.exit_code == 0
        assert "Notes:" in result.stdout
        assert "3 notes" in result.stdout
        assert "KB" in result.stdout

    def test_missing_path(self, tmp_path):
        result = runner.invoke(app, ["scan", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_missing_argument(self):
        result = runner.invoke(app, ["scan"])

        assert result.exit_code != 0


class TestConfigCommand:
    def test_shows_effective_config(self, monkeypatch):
        monkeypatch.setenv("VAULTSTATS_COLLECTOR_BATCH_SIZE", "21")
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "exclude_directories" in result.stdout
        assert "21" in result.stdout

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["config", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Error" in result.stdout
