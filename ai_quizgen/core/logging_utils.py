from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class RotationPolicy:
    max_bytes: int = 5 * 1024 * 1024
    max_age_hours: int = 24
    max_files: int = 5

    @property
    def enabled(self) -> bool:
        return self.max_bytes > 0 or self.max_age_hours > 0


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def rotation_policy_from_env() -> RotationPolicy:
    defaults = RotationPolicy()
    return RotationPolicy(
        max_bytes=_env_int("AI_QUIZGEN_LOG_MAX_BYTES", defaults.max_bytes),
        max_age_hours=_env_int("AI_QUIZGEN_LOG_MAX_AGE_HOURS", defaults.max_age_hours),
        max_files=_env_int("AI_QUIZGEN_LOG_MAX_FILES", defaults.max_files),
    )


def _is_due(path: Path, policy: RotationPolicy, now: datetime) -> bool:
    try:
        stat = path.stat()
    except FileNotFoundError:
        return False
    if policy.max_bytes > 0 and stat.st_size >= policy.max_bytes:
        return True
    if policy.max_age_hours > 0:
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return (now - modified).total_seconds() >= policy.max_age_hours * 3600
    return False


def _prune_rotated(path: Path, keep: int) -> None:
    if keep <= 0:
        return
    rotated = sorted(
        path.parent.glob(f"{path.stem}.*{path.suffix}"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for stale in rotated[keep:]:
        stale.unlink(missing_ok=True)


def rotate_log_if_needed(path: Path, policy: RotationPolicy | None = None) -> None:
    """Move ``path`` aside with a timestamp suffix once it is too big or too old.

    Limits come from the ``AI_QUIZGEN_LOG_*`` environment variables unless a
    policy is passed. At most ``max_files`` rotated copies are kept.
    """
    policy = policy or rotation_policy_from_env()
    if not policy.enabled or not path.is_file():
        return

    now = datetime.now(timezone.utc)
    if not _is_due(path, policy, now):
        return

    rotated = path.with_name(f"{path.stem}.{now.strftime('%Y%m%d-%H%M%S')}{path.suffix}")
    shutil.move(str(path), str(rotated))
    _prune_rotated(path, policy.max_files)


def configure_logging(level: int | str = logging.INFO, log_path: Path | None = None) -> None:
    """Attach stream (and optional rotated file) handlers to the package logger."""
    logger = logging.getLogger("ai_quizgen")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        rotate_log_if_needed(log_path)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
