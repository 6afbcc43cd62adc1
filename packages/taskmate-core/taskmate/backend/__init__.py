"""
Backend abstraction layer supporting Supabase and a local SQLite store.
"""

from taskmate.backend.factory import close_backend, create_backend, get_backend, reset_backend
from taskmate.backend.interface import Backend, BlobStore, RowStore, Session, TaskFunction

__all__ = [
    "Backend",
    "BlobStore",
    "RowStore",
    "Session",
    "TaskFunction",
    "create_backend",
    "get_backend",
    "close_backend",
    "reset_backend",
]
