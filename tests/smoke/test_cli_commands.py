"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They run in-process with typer's CliRunner against a temporary SQLite file.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import pytest
from typer.testing import CliRunner

from config import get_settings
from leitner.cli.main import app
from leitner.db.database import get_engine

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_database(tmp_path, monkeypatch):
    """Point the CLI at a fresh database and create its tables."""
    monkeypatch.setenv("LEITNER_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    get_settings.cache_clear()
    get_engine.cache_clear()

    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.output

    yield

    get_engine().dispose()
    get_settings.cache_clear()
    get_engine.cache_clear()


def invoke(*args):
    return runner.invoke(app, list(args))


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = invoke("--help")

        assert result.exit_code == 0
        for command in ("answer", "review", "stats", "items", "db"):
            assert command in result.output


class TestDatabaseCommands:
    def test_init_is_idempotent(self):
        result = invoke("db", "init")

        assert result.exit_code == 0
        assert "Database initialized" in result.output


class TestAnswerFlow:
    def test_add_answer_and_review(self):
        assert invoke("items", "add", "alice", "q-1", "--text", "What is TCP?").exit_code == 0
        assert invoke("items", "add", "alice", "q-2", "--type", "flashcard").exit_code == 0

        answer = invoke("answer", "alice", "q-1", "--correct")
        assert answer.exit_code == 0, answer.output
        assert "box 2" in answer.output

        review = invoke("review", "alice", "--mode", "new")
        assert review.exit_code == 0, review.output
        assert "q-2" in review.output
        assert "q-1" not in review.output

    def test_incorrect_answer(self):
        invoke("items", "add", "alice", "q-1")

        result = invoke("answer", "alice", "q-1", "--incorrect")

        assert result.exit_code == 0
        assert "box 1" in result.output

    def test_init_progress(self):
        invoke("items", "add", "alice", "q-1")

        first = invoke("init-progress", "alice", "q-1", "--correct")
        second = invoke("init-progress", "alice", "q-1", "--incorrect")

        assert first.exit_code == 0 and "Created progress" in first.output
        assert second.exit_code == 0 and "already exists" in second.output

    def test_init_progress_unknown_item(self):
        result = invoke("init-progress", "alice", "ghost", "--correct")

        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_remove_item(self):
        invoke("items", "add", "alice", "q-1")

        assert invoke("items", "remove", "alice", "q-1").exit_code == 0
        assert invoke("items", "remove", "alice", "q-1").exit_code == 0
        assert invoke("items", "remove", "alice", "ghost").exit_code == 1

    def test_empty_review(self):
        result = invoke("review", "alice")

        assert result.exit_code == 0
        assert "Nothing to review" in result.output


class TestStats:
    def test_stats_table(self):
        invoke("items", "add", "alice", "q-1")
        invoke("answer", "alice", "q-1", "--correct")

        result = invoke("stats", "alice")

        assert result.exit_code == 0, result.output
        assert "Box 2" in result.output
        assert "Total in system" in result.output


class TestValidationErrors:
    def test_unknown_mode_exits_with_2(self):
        result = invoke("review", "alice", "--mode", "cram")

        assert result.exit_code == 2
        assert "Invalid input" in result.output

    def test_zero_limit_exits_with_2(self):
        result = invoke("review", "alice", "--limit", "0")

        assert result.exit_code == 2
