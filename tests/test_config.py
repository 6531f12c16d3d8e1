import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from ai_quizgen.adapters.env_loader import EnvLoader
from ai_quizgen.adapters.preferences_store import PreferencesStore, default_preferences
from ai_quizgen.core.config import DEFAULT_SETTINGS, SettingsLoader
from ai_quizgen.core.runtime_data import get_runtime_paths


def test_defaults_match_documented_constants():
    assert DEFAULT_SETTINGS.base_url == "https://generativelanguage.googleapis.com/v1beta/models"
    assert DEFAULT_SETTINGS.model == "gemini-1.5-flash"
    assert DEFAULT_SETTINGS.max_retries == 3
    assert DEFAULT_SETTINGS.retry_delay == 1.0
    assert DEFAULT_SETTINGS.rate_limit_cooldown == 60.0
    assert DEFAULT_SETTINGS.request_timeout == 30.0
    assert DEFAULT_SETTINGS.max_queue_size == 50
    assert DEFAULT_SETTINGS.request_pacing == 0.1


def test_yaml_overrides_known_keys_only(tmp_path):
    config = tmp_path / "gemini.yaml"
    config.write_text(
        "gemini:\n"
        "  model: gemini-1.5-pro\n"
        "  max_retries: 5\n"
        "  request_timeout: ''\n"
        "  unknown_key: 1\n",
        encoding="utf-8",
    )
    settings = SettingsLoader(config).load()
    assert settings.model == "gemini-1.5-pro"
    assert settings.max_retries == 5
    assert settings.request_timeout == 30.0
    assert not hasattr(settings, "unknown_key")


def test_missing_or_odd_config_falls_back(tmp_path):
    assert SettingsLoader(tmp_path / "absent.yaml").load() == DEFAULT_SETTINGS
    odd = tmp_path / "odd.yaml"
    odd.write_text("gemini: [1, 2]\n", encoding="utf-8")
    assert SettingsLoader(odd).load() == DEFAULT_SETTINGS


def test_runtime_paths_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_QUIZGEN_RUNTIME_DIR", str(tmp_path / "rt"))
    paths = get_runtime_paths()
    assert paths.root == tmp_path / "rt"
    assert paths.preferences_path == tmp_path / "rt" / "preferences.json"
    assert paths.logs_dir.is_dir()


def test_preferences_store_round_trip(tmp_path):
    store = PreferencesStore(tmp_path / "nested" / "preferences.json")
    assert store.get_preferences() is None

    doc = default_preferences()
    doc["apiKeys"]["gemini"] = "abc"
    store.store_preferences(doc)
    assert store.get_preferences() == doc
    assert list((tmp_path / "nested").iterdir()) == [tmp_path / "nested" / "preferences.json"]

    (tmp_path / "nested" / "preferences.json").write_text("{broken", encoding="utf-8")
    assert store.get_preferences() is None
    (tmp_path / "nested" / "preferences.json").write_text(json.dumps([1]), encoding="utf-8")
    assert store.get_preferences() is None


def test_env_loader_prefers_process_environment(tmp_path, monkeypatch):
    dotenv = tmp_path / ".env"
    dotenv.write_text("GEMINI_API_KEY=from-file\nOTHER=  spaced  \nEMPTY=\n", encoding="utf-8")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("OTHER", raising=False)
    monkeypatch.delenv("EMPTY", raising=False)

    loader = EnvLoader(dotenv)
    loader.load()
    assert loader.get("GEMINI_API_KEY") == "from-file"
    assert loader.get("OTHER") == "spaced"
    assert loader.get("EMPTY") is None
    assert loader.get("MISSING") is None

    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    loader = EnvLoader(dotenv)
    loader.load()
    assert loader.get("GEMINI_API_KEY") == "from-env"
