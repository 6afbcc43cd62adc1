"""
Taskmate Core Library

Task management client for a hosted Supabase backend, with a local SQLite
fallback.
"""

__version__ = "0.1.0"

from taskmate.backend import Backend, Session, create_backend, get_backend
from taskmate.config import TaskmateConfig, load_config
from taskmate.services import TaskManager

__all__ = [
    "load_config",
    "TaskmateConfig",
    "Backend",
    "Session",
    "create_backend",
    "get_backend",
    "TaskManager",
]
