from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)


def default_preferences() -> dict[str, Any]:
    return {
        "apiKeys": {},
        "preferences": {
            "theme": "light",
            "defaultQuizSettings": {
                "shuffleQuestions": False,
                "showExplanations": True,
            },
        },
    }


class PreferencesStore:
    """User preferences document kept in a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get_preferences(self) -> Union[dict[str, Any], None]:
        if not self.path.exists():
            return None
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read preferences from %s: %s", self.path, e)
            return None
        return doc if isinstance(doc, dict) else None

    def store_preferences(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(doc, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
