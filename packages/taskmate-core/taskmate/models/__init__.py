"""
Core data models for Taskmate.
"""

from taskmate.models.image import ImageFile
from taskmate.models.task import Task

__all__ = [
    "Task",
    "ImageFile",
]
