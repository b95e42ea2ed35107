"""Storage for the web search API credential."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SEARCH_API_KEY = "search_api_key"


class CredentialStore(Protocol):
    """Secure read/write/delete of named secrets."""

    def get(self, name: str) -> str | None:
        """Return the secret or None when unset."""

    def set(self, name: str, value: str) -> None:
        """Persist a secret."""

    def delete(self, name: str) -> None:
        """Remove a secret; missing names are ignored."""


def _require_value(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("API key cannot be empty")
    return value.strip()


class InMemoryCredentialStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        self._values[name] = _require_value(value)

    def delete(self, name: str) -> None:
        self._values.pop(name, None)


class FileCredentialStore:
    """JSON file readable only by the owning user (mode 0600)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, name: str) -> str | None:
        return self._read().get(name)

    def set(self, name: str, value: str) -> None:
        values = self._read()
        values[name] = _require_value(value)
        self._write(values)
        logger.info("Credential %s saved", name)

    def delete(self, name: str) -> None:
        values = self._read()
        if values.pop(name, None) is not None:
            self._write(values)
            logger.info("Credential %s cleared", name)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        return dict(json.loads(self.path.read_text(encoding="utf-8")))

    def _write(self, values: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(values, handle)
        os.chmod(self.path, 0o600)
