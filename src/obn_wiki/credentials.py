"""Per-user key-value storage for the chat provider credential."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import typer

APP_NAME = "obn-wiki"
STORAGE_FILENAME = "storage.json"
CREDENTIAL_KEY = "obn-openrouter-key"

logger = logging.getLogger(__name__)


def default_storage_path() -> Path:
    """Resolve the storage file: ``OBN_WIKI_HOME`` first, then the typer app dir."""
    home = (os.getenv("OBN_WIKI_HOME") or "").strip()
    base = Path(home).expanduser() if home else Path(typer.get_app_dir(APP_NAME))
    return base / STORAGE_FILENAME


class CredentialStore:
    """Holds one bearer string under ``CREDENTIAL_KEY``.

    Other keys in the storage file are preserved on save and clear.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else default_storage_path()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable storage file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Owner-only from creation; an older file may predate the mode.
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(data, indent=2))

    def load(self) -> str | None:
        value = self._read().get(CREDENTIAL_KEY)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def save(self, api_key: str) -> None:
        value = api_key.strip()
        if not value:
            raise ValueError("API key must be a non-empty string.")
        data = self._read()
        data[CREDENTIAL_KEY] = value
        self._write(data)

    def clear(self) -> None:
        data = self._read()
        if data.pop(CREDENTIAL_KEY, None) is not None:
            self._write(data)
