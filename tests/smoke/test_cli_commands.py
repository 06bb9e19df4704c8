"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Every test runs against its own SQLite file, catalog and training directory
so nothing touches the developer's data/ directory. None of these commands
load the embedding model or call a model server.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing the CLI at a scratch database and catalog."""
    env = os.environ.copy()
    env.update(
        {
            "DATABASE_URL": f"sqlite:///{tmp_path / 'learning.db'}",
            "CATALOG_PATH": str(tmp_path / "promoted.json"),
            "TRAINING_OUTPUT_DIR": str(tmp_path / "training"),
            "INFERENCE_BACKEND": "heuristic",
            "LOG_LEVEL": "WARNING",
        }
    )
    return env


@pytest.fixture
def run_cli(cli_env):
    """Run a CLI command and return exit code, stdout, stderr."""

    def _run(*args: str, timeout: int = 60) -> tuple[int, str, str]:
        result = subprocess.run(
            [sys.executable, "-m", "uiforge.cli.main", *args],
            cwd=PROJECT_ROOT,
            env=cli_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, run_cli):
        """Main help should list the commands."""
        code, stdout, stderr = run_cli("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "Commands" in stdout
        assert "feedback" in stdout
        assert "promote" in stdout

    @pytest.mark.parametrize("command", ["feedback", "export", "search", "score"])
    def test_command_help(self, run_cli, command):
        code, stdout, stderr = run_cli(command, "--help")

        assert code == 0, f"{command} help failed: {stderr}"

    def test_version(self, run_cli):
        code, stdout, stderr = run_cli("version")

        assert code == 0, f"Version failed: {stderr}"
        assert "uiforge-learn" in stdout


class TestCLIDatabase:
    def test_init_db_is_idempotent(self, run_cli, tmp_path):
        for _ in range(2):
            code, stdout, stderr = run_cli("init-db")

            assert code == 0, f"init-db failed: {stderr}"
            assert "Learning tables ready" in stdout

        assert (tmp_path / "learning.db").exists()


class TestCLIFeedback:
    """Test feedback recording and stats."""

    def test_feedback_then_stats(self, run_cli):
        code, stdout, stderr = run_cli("feedback", "gen-123", "positive", "--comment", "exactly right")

        assert code == 0, f"feedback failed: {stderr}"
        assert "Recorded positive feedback for gen-123" in stdout

        code, stdout, stderr = run_cli("stats")

        assert code == 0, f"stats failed: {stderr}"
        assert "Feedback" in stdout
        assert "Code Patterns" in stdout

    def test_invalid_rating(self, run_cli):
        code, stdout, stderr = run_cli("feedback", "gen-123", "meh")

        assert code == 1
        assert "Invalid rating" in stdout


class TestCLIPatterns:
    def test_patterns_empty(self, run_cli):
        code, stdout, stderr = run_cli("patterns")

        assert code == 0, f"patterns failed: {stderr}"
        assert "No patterns recorded yet" in stdout

    def test_promote_nothing_eligible(self, run_cli, tmp_path):
        code, stdout, stderr = run_cli("promote")

        assert code == 0, f"promote failed: {stderr}"
        assert "No patterns eligible for promotion" in stdout
        assert not (tmp_path / "promoted.json").exists()


class TestCLITraining:
    def test_readiness(self, run_cli):
        code, stdout, stderr = run_cli("readiness")

        assert code == 0, f"readiness failed: {stderr}"
        assert "quality-scorer" in stdout
        assert "style-recommender" in stdout
        assert "idle" in stdout

    def test_export_after_feedback(self, run_cli, tmp_path):
        run_cli("feedback", "gen-1", "negative")

        code, stdout, stderr = run_cli("export", "all")

        assert code == 0, f"export failed: {stderr}"
        assert "quality-scorer" in stdout
        # Feedback for an uncached generation has no prompt, so nothing is exported
        assert "no training rows available" in stdout

    def test_train_start_without_data(self, run_cli):
        code, stdout, stderr = run_cli("train-start", "quality-scorer")

        assert code == 1
        assert "No training data available" in stdout

        code, stdout, stderr = run_cli("readiness")

        assert code == 0, f"readiness failed: {stderr}"
        assert "failed" in stdout

    def test_train_update_unknown_job(self, run_cli):
        code, stdout, stderr = run_cli("train-update", "42", "training", "--progress", "10")

        assert code == 1
        assert "not found" in stdout

    def test_export_unknown_adapter(self, run_cli):
        code, stdout, stderr = run_cli("export", "layout-predictor")

        assert code == 1
        assert "Unknown adapter" in stdout


class TestCLIEmbeddings:
    def test_search_empty_store(self, run_cli):
        code, stdout, stderr = run_cli("search", "pricing table")

        assert code == 0, f"search failed: {stderr}"
        assert "No component embeddings stored" in stdout

    def test_index_missing_file(self, run_cli, tmp_path):
        code, stdout, stderr = run_cli("index", str(tmp_path / "missing.jsonl"))

        assert code == 1
        assert "File not found" in stdout

    def test_index_malformed_file(self, run_cli, tmp_path):
        path = tmp_path / "rows.jsonl"
        path.write_text(json.dumps({"id": "c1"}) + "\n", encoding="utf-8")

        code, stdout, stderr = run_cli("index", str(path))

        assert code == 1


class TestCLIInference:
    """Inference-backed commands fall back to rules without a model server."""

    def test_enhance(self, run_cli):
        code, stdout, stderr = run_cli("enhance", "a nice card", "--component-type", "card")

        assert code == 0, f"enhance failed: {stderr}"
        assert "rules" in stdout

    def test_score(self, run_cli, tmp_path):
        code_file = tmp_path / "Card.tsx"
        code_file.write_text('<div className="flex p-4"><h2>Card</h2></div>', encoding="utf-8")

        code, stdout, stderr = run_cli("score", "a card", str(code_file), "--component-type", "card")

        assert code == 0, f"score failed: {stderr}"
        assert "/10" in stdout
        assert "heuristic" in stdout
