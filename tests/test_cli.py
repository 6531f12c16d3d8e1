import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from typer.testing import CliRunner

from ai_quizgen.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def runtime_env(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_QUIZGEN_RUNTIME_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("AI_QUIZGEN_ENV", "mock")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path / "runtime-data"
    package_logger = logging.getLogger("ai_quizgen")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


def test_cli_generate_mock_writes_json(tmp_path, runtime_env):
    source = tmp_path / "notes.txt"
    source.write_text("The mitochondria is the powerhouse of the cell. It makes ATP.", encoding="utf-8")
    out_path = tmp_path / "out" / "quiz.json"

    result = runner.invoke(app, ["generate", str(source), "--count", "3", "--output", str(out_path)])

    assert result.exit_code == 0, result.output
    assert "question(s) written to" in result.output
    data = json.loads(out_path.read_text(encoding="utf-8"))
    assert data["success"] is True
    assert data["metadata"]["requested_count"] == 3
    assert data["questions"][0]["type"] == "single-choice"
    assert data["questions"][0]["id"].startswith("ai_q_")
    assert (runtime_env / "logs" / "ai_quizgen.log").exists()


def test_cli_generate_failures(tmp_path):
    result = runner.invoke(app, ["generate", str(tmp_path / "missing.txt")])
    assert result.exit_code == 1
    assert "File not found" in result.output

    source = tmp_path / "symbols.txt"
    source.write_text("### @@@ ###", encoding="utf-8")
    result = runner.invoke(app, ["generate", str(source)])
    assert result.exit_code == 1
    assert "Content is empty or invalid" in result.output


def test_cli_key_set_then_status(runtime_env, monkeypatch):
    result = runner.invoke(app, ["key:set", "AIzaSyTestKey1234"])
    assert result.exit_code == 0, result.output
    assert "validated and saved" in result.output

    doc = json.loads((runtime_env / "preferences.json").read_text(encoding="utf-8"))
    assert doc["apiKeys"]["gemini"] == "AIzaSyTestKey1234"

    monkeypatch.setenv("AI_QUIZGEN_ENV", "real")
    result = runner.invoke(app, ["key:status"])
    assert result.exit_code == 0
    assert "AIzaSyTe..." in result.output


def test_cli_key_status_without_key(monkeypatch):
    monkeypatch.setenv("AI_QUIZGEN_ENV", "real")
    result = runner.invoke(app, ["key:status"])
    assert result.exit_code == 0
    assert "No API key configured" in result.output


def test_cli_test_connection_and_capabilities(monkeypatch):
    result = runner.invoke(app, ["test-connection"])
    assert result.exit_code == 0, result.output
    assert "working" in result.output

    result = runner.invoke(app, ["capabilities"])
    assert result.exit_code == 0
    assert '"max_questions": 20' in result.output
    assert '"multi-choice"' in result.output

    monkeypatch.setenv("AI_QUIZGEN_ENV", "real")
    result = runner.invoke(app, ["test-connection"])
    assert result.exit_code == 1
    assert "No API key configured" in result.output
