"""Build and chat settings with environment overrides."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_SITE_URL = "https://obn.wiki"
DEFAULT_CHAT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_CHAT_MODEL = "anthropic/claude-3-haiku"

INDEX_FILENAME = "pattern-index.json"


def _env(name: str) -> str | None:
    """Return a stripped environment value, treating blanks as unset."""
    value = (os.getenv(name) or "").strip()
    return value or None


class BuildSettings(BaseModel):
    """Filesystem layout for one site build, rooted at the repository root."""

    root: Path = Path(".")

    @property
    def patterns_dir(self) -> Path:
        return self.root / "patterns"

    @property
    def docs_dir(self) -> Path:
        return self.root / "site" / "src" / "content" / "docs"

    @property
    def public_dir(self) -> Path:
        return self.root / "site" / "public"

    @property
    def index_path(self) -> Path:
        return self.public_dir / INDEX_FILENAME


class ChatSettings(BaseModel):
    """Runtime settings for retrieval and the streamed chat completion."""

    site_url: str = DEFAULT_SITE_URL
    api_url: str = DEFAULT_CHAT_API_URL
    model: str = DEFAULT_CHAT_MODEL
    max_tokens: int = Field(default=1000, gt=0)
    top_k: int = Field(default=5, gt=0)
    context_docs: int = Field(default=3, ge=0)
    context_chars: int = Field(default=2000, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    index_path: Path | None = None

    @classmethod
    def from_env(cls, **overrides: object) -> ChatSettings:
        """Build settings from ``OBN_*`` environment variables.

        Explicit ``overrides`` that are not ``None`` take precedence over the
        environment, which takes precedence over defaults.
        """
        values: dict[str, object] = {}
        env_map = {
            "site_url": "OBN_SITE_URL",
            "api_url": "OBN_CHAT_API_URL",
            "model": "OBN_CHAT_MODEL",
        }
        for field_name, env_name in env_map.items():
            value = _env(env_name)
            if value:
                values[field_name] = value
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)

    @property
    def index_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/{INDEX_FILENAME}"

    def page_url(self, path: str) -> str:
        """Join a site-relative route such as ``/patterns/x/y/`` onto ``site_url``."""
        return f"{self.site_url.rstrip('/')}/{path.lstrip('/')}"
