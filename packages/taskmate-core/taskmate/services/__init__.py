"""
Business logic services for Taskmate.
"""

from taskmate.services.tasks import TaskManager

__all__ = [
    "TaskManager",
]
