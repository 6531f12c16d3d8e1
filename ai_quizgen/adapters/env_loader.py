from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from dotenv import dotenv_values, find_dotenv


class EnvLoader:
    """Reads settings from a .env file, with the process environment taking precedence."""

    def __init__(self, dotenv_path: Union[Path, None] = None) -> None:
        self.dotenv_path = dotenv_path
        self._values: dict[str, str] = {}
        self._loaded = False

    def load(self) -> None:
        if self._loaded:
            return
        path = self.dotenv_path or find_dotenv(usecwd=True)
        file_values = dotenv_values(path) if path else {}
        self._values = {key: value for key, value in file_values.items() if value is not None}
        self._values.update(os.environ)
        self._loaded = True

    def get(self, name: str) -> Union[str, None]:
        value = self._values.get(name, "").strip()
        return value or None
