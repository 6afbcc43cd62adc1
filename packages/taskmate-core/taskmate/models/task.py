"""
Task model for Taskmate.

Tasks mirror rows of the backend's `tasks` table. The backend assigns the
identifier, owner and timestamps; the client edits everything else.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from taskmate.dates import DueDate, parse_optional_due_date


@dataclass
class Task:
    """
    A task owned by one user.

    Attributes:
        task_id: Unique identifier assigned by the backend
        user_id: Owner, assigned by the backend
        title: Task title
        description: Free-text description
        completed: Whether the task is done
        priority: Low, Medium or High (None when unset)
        label: Optional category
        due_date: Stored due-date string ("YYYY-MM-DD" or with time and offset)
        image_url: Storage path of the attached image ("user_id/task_id.ext")
        created_at: When the task was created
        updated_at: When last modified
    """

    task_id: str
    title: str = ""
    user_id: Optional[str] = None
    description: Optional[str] = None
    completed: bool = False
    priority: Optional[str] = "Medium"
    label: Optional[str] = None
    due_date: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.completed)

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    @property
    def due(self) -> Optional[DueDate]:
        """Parsed due date; malformed values count as no due date."""
        return parse_optional_due_date(self.due_date)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "task_id": self.task_id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority,
            "label": self.label,
            "due_date": self.due_date,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_patch(self) -> dict:
        """Mutable columns, for updates (identity and creation time are backend-owned)."""
        return {
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority,
            "label": self.label,
            "due_date": self.due_date,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create Task from dictionary (e.g., backend row)."""
        data = dict(data)

        for field_name in ("created_at", "updated_at"):
            if data.get(field_name) and isinstance(data[field_name], str):
                data[field_name] = datetime.fromisoformat(data[field_name].replace("Z", "+00:00"))

        if data.get("task_id") in (None, ""):
            raise ValueError("Task row has no task_id")

        priority = data.get("priority", "Medium")
        if priority not in TASK_PRIORITIES:
            priority = None

        return cls(
            task_id=str(data.get("task_id")),
            user_id=data.get("user_id"),
            title=data.get("title") or "",
            description=data.get("description"),
            completed=bool(data.get("completed") or False),
            priority=priority,
            label=data.get("label"),
            due_date=data.get("due_date"),
            image_url=data.get("image_url"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


# Valid priority values, lowest first
TASK_PRIORITIES = ("Low", "Medium", "High")

# Sort rank per priority; unset priorities rank 0
PRIORITY_RANK = {"High": 3, "Medium": 2, "Low": 1}

# Known label catalog
TASK_LABELS = ("Work", "Personal", "Shopping", "Health", "Finance", "Other")
