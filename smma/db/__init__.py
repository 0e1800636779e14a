"""Database layer package.

Public re-exports so callers can write::

    from smma.db import get_connection, init_db
"""

from smma.db.connection import get_connection
from smma.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
