"""Configuration loader for the Gemini orchestrator and quiz pipeline."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass(frozen=True)
class GeminiSettings:
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-1.5-flash"
    max_retries: int = 3
    retry_delay: float = 1.0
    rate_limit_cooldown: float = 60.0
    request_timeout: float = 30.0
    max_queue_size: int = 50
    request_pacing: float = 0.1
    max_content_length: int = 8000
    max_questions: int = 20
    min_questions: int = 1
    quota_warning_threshold: float = 0.8
    quota_critical_threshold: float = 0.95
    service_name: str = "Gemini API"


DEFAULT_SETTINGS = GeminiSettings()


class SettingsLoader:
    """Loads settings overrides from config/gemini.yaml."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "gemini.yaml"
        self.config_path = config_path
        self._config: dict[str, Any] | None = None

    def _load_config(self) -> None:
        if self._config is not None:
            return
        if not self.config_path.exists():
            self._config = {}
            return
        with self.config_path.open("r", encoding="utf-8") as handle:
            self._config = yaml.safe_load(handle) or {}

    def load(self) -> GeminiSettings:
        """Return the defaults with any non-empty YAML overrides applied."""
        self._load_config()
        section = (self._config or {}).get("gemini", {})
        if not isinstance(section, dict):
            return DEFAULT_SETTINGS
        known = {f.name for f in fields(GeminiSettings)}
        overrides = {
            key: value
            for key, value in section.items()
            if key in known and value not in (None, "")
        }
        return replace(DEFAULT_SETTINGS, **overrides)


settings_loader = SettingsLoader()
