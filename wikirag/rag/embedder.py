"""Embedding capability: text in, fixed-length float vector out.

``settings.embedding_provider`` picks the backend:

* ``ollama``: local ``POST {OLLAMA_BASE_URL}/api/embeddings`` with
  ``OLLAMA_EMBED_MODEL``.
* ``openai``: the hosted embeddings endpoint with ``OPENAI_EMBED_MODEL``,
  asking for ``EMBEDDING_DIM`` dimensions; needs ``OPENAI_API_KEY``.

Vectors must be exactly ``settings.embedding_dim`` long, since the
``page_vectors`` column is declared with that size.
"""

from __future__ import annotations

import os
from typing import Any, Callable

import httpx

from wikirag.config import settings

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"

# Embedding a long page on a cold local model can take a while.
_TIMEOUT = 60.0


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> Any:
    with httpx.Client(timeout=_TIMEOUT) as client:
        response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()


def _ollama_vector(text: str) -> list[float]:
    body = _post_json(
        f"{settings.ollama_base_url}/api/embeddings",
        {"model": settings.ollama_embed_model, "prompt": text},
    )
    return body["embedding"]


def _openai_vector(text: str) -> list[float]:
    key = os.environ.get("OPENAI_API_KEY", "")
    if not key:
        raise EnvironmentError(
            "OPENAI_API_KEY is not set; export it or use EMBEDDING_PROVIDER=ollama."
        )
    body = _post_json(
        OPENAI_EMBEDDINGS_URL,
        {
            "model": settings.openai_embed_model,
            "input": text,
            "dimensions": settings.embedding_dim,
        },
        headers={"Authorization": f"Bearer {key}"},
    )
    return body["data"][0]["embedding"]


_PROVIDERS: dict[str, Callable[[str], list[float]]] = {
    "ollama": _ollama_vector,
    "openai": _openai_vector,
}


def embed_text(text: str) -> list[float]:
    """Embed *text* with the configured provider (Ollama when unrecognised).

    Raises:
        httpx.HTTPError: On transport failures or non-2xx responses.
        EnvironmentError: OpenAI selected without ``OPENAI_API_KEY``.
        ValueError: The vector length differs from ``settings.embedding_dim``.
    """
    provider = _PROVIDERS.get(settings.embedding_provider, _ollama_vector)
    vector = provider(text)
    if len(vector) != settings.embedding_dim:
        raise ValueError(
            f"Embedding has {len(vector)} dimensions, expected {settings.embedding_dim}"
        )
    return vector
