"""Runtime settings for wikirag.

Every value comes from the environment, optionally seeded from a ``.env``
file at the project root (read once, at import, without overriding variables
that are already set).  See ``.env.example`` for the full list.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


def _env(name: str, default: str) -> Callable[[], str]:
    return lambda: os.environ.get(name, default)


def _env_int(name: str, default: int) -> Callable[[], int]:
    return lambda: int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> Callable[[], float]:
    return lambda: float(os.environ.get(name, default))


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("WIKIRAG_WORKSPACE", "~/.wikirag_data")
        ).expanduser()
    )

    # ------------------------------------------------------------------
    # Wiki content API
    # ------------------------------------------------------------------
    confluence_base_url: str = field(default_factory=_env("CONFLUENCE_BASE_URL", ""))
    confluence_username: str = field(default_factory=_env("CONFLUENCE_USERNAME", ""))
    confluence_password: str = field(default_factory=_env("CONFLUENCE_PASSWORD", ""))
    # Comma separated; empty means every space.
    confluence_space_keys: str = field(default_factory=_env("CONFLUENCE_SPACE_KEYS", ""))
    request_timeout: float = field(default_factory=_env_float("REQUEST_TIMEOUT", 30.0))

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    embedding_provider: str = field(default_factory=_env("EMBEDDING_PROVIDER", "ollama"))
    ollama_base_url: str = field(
        default_factory=_env("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_embed_model: str = field(
        default_factory=_env("OLLAMA_EMBED_MODEL", "nomic-embed-text:latest")
    )
    openai_embed_model: str = field(
        default_factory=_env("OPENAI_EMBED_MODEL", "text-embedding-3-small")
    )
    embedding_dim: int = field(default_factory=_env_int("EMBEDDING_DIM", 768))
    # Characters of page text sent to the embedding model.
    embed_max_chars: int = field(default_factory=_env_int("EMBED_MAX_CHARS", 8000))

    # ------------------------------------------------------------------
    # Chat model
    # ------------------------------------------------------------------
    llm_provider: str = field(default_factory=_env("LLM_PROVIDER", "ollama"))
    ollama_chat_model: str = field(default_factory=_env("OLLAMA_CHAT_MODEL", "llama3.1:8b"))
    openai_chat_model: str = field(default_factory=_env("OPENAI_CHAT_MODEL", "gpt-4o-mini"))

    # ------------------------------------------------------------------
    # Sync and retrieval
    # ------------------------------------------------------------------
    sync_page_delay: float = field(default_factory=_env_float("SYNC_PAGE_DELAY", 0.1))
    search_top_k: int = field(default_factory=_env_int("SEARCH_TOP_K", 5))
    similarity_threshold: float = field(
        default_factory=_env_float("SIMILARITY_THRESHOLD", 0.5)
    )
    stream_timeout: float = field(default_factory=_env_float("STREAM_TIMEOUT", 30.0))

    log_level: str = field(default_factory=_env("LOG_LEVEL", "INFO"))

    @property
    def db_path(self) -> Path:
        return self.workspace_dir / "wikirag.db"

    @property
    def schema_path(self) -> Path:
        """``schema.sql`` shipped inside the ``wikirag.db`` package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    @property
    def space_keys(self) -> list[str]:
        """``confluence_space_keys`` split into a list, blanks dropped."""
        return [k.strip() for k in self.confluence_space_keys.split(",") if k.strip()]

    def ensure_workspace(self) -> None:
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
