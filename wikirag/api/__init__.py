"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from wikirag.api import app

    uvicorn wikirag.api:app --reload
"""

from wikirag.api.app import app, create_app

__all__ = ["app", "create_app"]
