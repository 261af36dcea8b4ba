"""Tests for CLI commands: planning, review, migration, algorithms, server and config."""

import json
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

import cadence.application.config as config_module
from cadence.interface.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")
    for var in ("CADENCE_ALGORITHM", "CADENCE_DATA_DIR", "CADENCE_MAX_NEW_CARDS_PER_DAY"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


def invoke(data_dir, *args, **kwargs):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args], **kwargs)


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced repetition scheduling" in result.stdout
    assert "review" in result.stdout
    assert "queue" in result.stdout
    assert "config" in result.stdout


# --- Items and planning ---


def test_add_and_count(data_dir):
    result = invoke(data_dir, "add", "deck", "a", "b")
    assert result.exit_code == 0
    assert "Added 2 items to deck." in result.stdout

    result = invoke(data_dir, "counts", "deck", "--json")
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "new": 2,
        "learning": 0,
        "review": 0,
        "suspended": 0,
        "total": 2,
    }


def test_add_duplicate_fails(data_dir):
    invoke(data_dir, "add", "deck", "a")
    result = invoke(data_dir, "add", "deck", "a", "b")

    assert result.exit_code == 1
    assert "Items already exist: a" in result.output


def test_add_with_leitner(data_dir):
    result = invoke(data_dir, "add", "deck", "a", "--algorithm", "leitner")
    assert result.exit_code == 0

    doc = yaml.safe_load((data_dir / "deck.yaml").read_text())
    assert doc["items"][0]["algorithm_data"]["algorithm_name"] == "leitner"


def test_add_with_unknown_algorithm_fails(data_dir):
    result = invoke(data_dir, "add", "deck", "a", "--algorithm", "fsrs")

    assert result.exit_code == 1
    assert "Algorithm 'fsrs' is not registered" in result.output


def test_add_with_inconsistent_algorithm_config_fails(data_dir, tmp_path):
    (tmp_path / "config.toml").write_text('algorithm = "leitner"\n[algorithm_config]\nbox_count = 3\n')
    result = invoke(data_dir, "add", "deck", "a")

    assert result.exit_code == 1
    assert "Invalid algorithm config: config:" in result.output
    assert not (data_dir / "deck.yaml").exists()


def test_queue_json(data_dir):
    invoke(data_dir, "add", "deck", "a", "b", "c")
    result = invoke(data_dir, "queue", "deck", "--max-new", "2", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["new_cards"] == ["a", "b"]
    assert data["learning_cards"] == []
    assert data["total_cards"] == 2
    assert data["estimated_study_time"] == 1


def test_queue_text(data_dir):
    invoke(data_dir, "add", "deck", "a")
    result = invoke(data_dir, "queue", "deck")

    assert result.exit_code == 0
    assert "New: 1  Learning: 0  Review: 0  Total: 1" in result.stdout
    assert "[new] a" in result.stdout


def test_queue_reports_bad_file(data_dir):
    (data_dir / "deck.yaml").write_text("items:\n  - id: a\n    id: b\n")
    result = invoke(data_dir, "queue", "deck")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_workload_json(data_dir):
    invoke(data_dir, "add", "deck", "a")
    result = invoke(data_dir, "workload", "deck", "--days", "3", "--json")

    assert result.exit_code == 0
    days = json.loads(result.stdout)
    assert len(days) == 3
    assert days[0]["new_cards"] == 1


# --- Review ---


def test_review_session(data_dir):
    invoke(data_dir, "add", "deck", "a", "b")
    result = invoke(data_dir, "review", "deck", input="easy\neasy\n")

    assert result.exit_code == 0
    assert "Studied 2 cards, 2 correct (100%)" in result.stdout
    assert "Streak: 1 day(s)" in result.stdout

    counts = json.loads(invoke(data_dir, "counts", "deck", "--json").stdout)
    assert counts["review"] == 2
    assert (data_dir / ".progress.yaml").exists()


def test_review_skip_undo_and_unknown_input(data_dir):
    invoke(data_dir, "add", "deck", "a", "b")
    result = invoke(data_dir, "review", "deck", input="maybe\neasy\nundo\nskip\neasy\nquit\n")

    assert result.exit_code == 0
    assert "Unknown response: maybe" in result.stdout
    assert "Studied 1 cards" in result.stdout

    doc = yaml.safe_load((data_dir / "deck.yaml").read_text())
    statuses = {item["id"]: item["status"] for item in doc["items"]}
    assert statuses == {"a": "new", "b": "review"}


def test_review_undo_after_learning_step(data_dir):
    invoke(data_dir, "add", "deck", "a", "b")
    result = invoke(data_dir, "review", "deck", input="good\nundo\neasy\nquit\n")

    assert result.exit_code == 0
    assert "Studied 1 cards" in result.stdout

    doc = yaml.safe_load((data_dir / "deck.yaml").read_text())
    statuses = {item["id"]: item["status"] for item in doc["items"]}
    assert statuses == {"a": "review", "b": "new"}


def test_review_nothing_due(data_dir):
    result = invoke(data_dir, "review", "deck")

    assert result.exit_code == 0
    assert "Nothing due. Well done!" in result.stdout


# --- Algorithms ---


def test_migrate(data_dir):
    invoke(data_dir, "add", "deck", "a", "b")
    result = invoke(data_dir, "migrate", "deck", "--to", "leitner")

    assert result.exit_code == 0
    assert "Migrated 2 items to leitner." in result.stdout
    doc = yaml.safe_load((data_dir / "deck.yaml").read_text())
    assert all(item["algorithm_data"]["leitner_box"] == 1 for item in doc["items"])


def test_migrate_unknown_target(data_dir):
    invoke(data_dir, "add", "deck", "a")
    result = invoke(data_dir, "migrate", "deck", "--to", "fsrs")

    assert result.exit_code == 1
    assert "not registered" in result.output


def test_algorithms_json():
    result = runner.invoke(app, ["algorithms", "--json"])

    assert result.exit_code == 0
    names = [a["name"] for a in json.loads(result.stdout)]
    assert names == ["anki-sm2", "leitner"]


def test_algorithms_text():
    result = runner.invoke(app, ["algorithms"])

    assert result.exit_code == 0
    assert "Leitner System" in result.stdout
    assert "Complexity: moderate" in result.stdout


def test_compare():
    result = runner.invoke(app, ["compare", "anki-sm2", "leitner"])

    assert result.exit_code == 0
    assert "Anki SM-2: moderate, Leitner System: simple" in result.stdout
    assert "Leitner System is simpler and better for beginners" in result.stdout


def test_compare_unknown():
    result = runner.invoke(app, ["compare", "anki-sm2", "fsrs"])
    assert result.exit_code == 1


@pytest.mark.parametrize(
    "args, expected",
    [(["--experience", "beginner"], "leitner"), ([], "anki-sm2")],
)
def test_recommend(args, expected):
    result = runner.invoke(app, ["recommend", *args])

    assert result.exit_code == 0
    assert result.stdout.strip() == expected


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("cadence.server:app", host="127.0.0.1", port=9000, reload=False)


# --- Config ---


def test_config_show(tmp_path):
    (tmp_path / "config.toml").write_text('algorithm = "leitner"\nmax_new_cards_per_day = 5\n')

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["algorithm"] == "leitner"
    assert data["max_new_cards_per_day"] == 5
    assert isinstance(data["data_dir"], str)
