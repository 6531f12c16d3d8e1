"""Runtime directory holding the preferences file (stored API key) and the log directory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RuntimePaths:
    root: Path
    preferences_path: Path
    logs_dir: Path
    log_path: Path


def build_runtime_paths(root: Path) -> RuntimePaths:
    preferences_path = root / "preferences.json"
    logs_dir = root / "logs"

    root.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    return RuntimePaths(
        root=root,
        preferences_path=preferences_path,
        logs_dir=logs_dir,
        log_path=logs_dir / "ai_quizgen.log",
    )


def get_runtime_paths() -> RuntimePaths:
    env_path = os.environ.get("AI_QUIZGEN_RUNTIME_DIR", "").strip()
    if env_path:
        root = Path(env_path)
    else:
        root = Path(__file__).resolve().parents[2] / "runtime-data"

    return build_runtime_paths(root)
