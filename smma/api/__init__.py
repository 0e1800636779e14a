"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from smma.api import app

    uvicorn smma.api:app --reload
"""

from smma.api.app import app

__all__ = ["app"]
