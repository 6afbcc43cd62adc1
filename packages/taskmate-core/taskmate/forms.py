"""
Form controllers for creating and editing tasks.

These hold what the user has typed so far, apply the same input rules as the
web forms (no past due times, image limits), and hand off to a TaskManager.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Optional

from taskmate.config import CREATE_MAX_BYTES
from taskmate.dates import DueDate, combine_date_time
from taskmate.errors import TaskmateError, ValidationError
from taskmate.models.image import ImageFile, format_size
from taskmate.models.task import TASK_PRIORITIES, Task
from taskmate.services.tasks import TaskManager

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    """A toast-style message for the user."""

    title: str
    description: str
    destructive: bool = False


@dataclass
class CreateTaskForm:
    """
    State of the "Create New Task" dialog.

    The due date and the image are not part of the creation call; they are
    added to the new task with a follow-up update.
    """

    title: str = ""
    description: str = ""
    due_date: Optional[date] = None
    due_time: str = ""
    priority: str = "Medium"
    image: Optional[ImageFile] = None
    error: Optional[str] = None
    is_submitting: bool = False
    max_image_bytes: int = CREATE_MAX_BYTES

    @classmethod
    def from_config(cls, config) -> "CreateTaskForm":
        return cls(max_image_bytes=config.uploads.create_max_bytes)

    def combined_due_datetime(self) -> Optional[datetime]:
        """The chosen date with the chosen time (midnight when no time)."""
        if self.due_date is None:
            return None
        return combine_date_time(self.due_date, self.due_time or None)

    @staticmethod
    def is_date_disabled(day: date, now: Optional[datetime] = None) -> bool:
        """Past days cannot be picked."""
        now = now or datetime.now()
        return day < now.date()

    def min_time(self, now: Optional[datetime] = None) -> str:
        """Earliest time allowed for the chosen day ("" unless it is today)."""
        now = now or datetime.now()
        if self.due_date is None or self.due_date != now.date():
            return ""
        earliest = now + timedelta(minutes=1)
        if earliest.date() != now.date():
            return "23:59"
        return earliest.strftime("%H:%M")

    def select_date(self, day: Optional[date], now: Optional[datetime] = None) -> None:
        """Pick a due date, dropping a time that would now be in the past."""
        now = now or datetime.now()
        self.due_date = day

        if day is None:
            self.due_time = ""
        elif day == now.date() and self.due_time:
            if combine_date_time(day, self.due_time) < now:
                self.due_time = ""

    def change_time(self, text: str, now: Optional[datetime] = None) -> bool:
        """
        Set the due time.

        Returns:
            False (and keeps the old time) if the time is already past today
        """
        now = now or datetime.now()
        if self.due_date is None or not text:
            self.due_time = text
            return True

        chosen = combine_date_time(self.due_date, text)
        if self.due_date == now.date() and chosen < now:
            return False

        self.due_time = text
        return True

    def attach_image(self, image: ImageFile) -> None:
        """Pick an image; oversized or non-JPEG/PNG files are refused."""
        if image.size > self.max_image_bytes:
            self.error = f"Image size must be less than {format_size(self.max_image_bytes)}"
            raise ValidationError(self.error)
        if not image.is_supported:
            self.error = f"Unsupported image type: {image.content_type}. Use JPEG or PNG"
            raise ValidationError(self.error)

        self.image = image
        self.error = None

    def remove_image(self) -> None:
        self.image = None

    def reset(self) -> None:
        self.title = ""
        self.description = ""
        self.due_date = None
        self.due_time = ""
        self.priority = "Medium"
        self.image = None

    async def submit(self, manager: TaskManager) -> Task:
        """
        Create the task, then attach the due date and image.

        Clears the form on success. On failure the message is kept in
        `error` and the exception is re-raised.
        """
        self.error = None
        self.is_submitting = True
        try:
            if not self.title.strip():
                raise ValidationError("Title is required")
            if self.priority not in TASK_PRIORITIES:
                raise ValidationError(f"Invalid priority. Must be one of: {', '.join(TASK_PRIORITIES)}")

            due = self.combined_due_datetime()
            task = await manager.create_task(self.title, self.description, self.priority)

            if due is not None:
                stored = DueDate.from_value(due, has_time=bool(self.due_time)).to_storage()
                task = replace(task, due_date=stored)

            if self.image is not None:
                task = await manager.upload_image(self.image, task=task, max_bytes=self.max_image_bytes)
            elif due is not None:
                task = await manager.save_task(task)
        except TaskmateError as e:
            self.error = str(e) or "Failed to create task"
            raise
        finally:
            self.is_submitting = False

        logger.info(f"New task created: {task.title}")
        self.reset()
        return task


class TaskDetailForm:
    """
    The task-detail page: edits the manager's loaded task and reports each
    action as a Notice.
    """

    def __init__(self, manager: TaskManager):
        self.manager = manager
        self.uploading = False

    @property
    def task(self) -> Optional[Task]:
        return self.manager.task

    def edit(self, **changes) -> Optional[Task]:
        return self.manager.update_task(**changes)

    def set_due(self, day: Optional[date], time_text: Optional[str] = None) -> None:
        """Pick a due date (and optionally a time); None clears it."""
        if day is None:
            self.manager.set_due_date(None)
            return
        self.manager.set_due_date(combine_date_time(day, time_text), has_time=bool(time_text))

    async def save(self) -> Notice:
        try:
            await self.manager.save_task()
        except TaskmateError:
            return Notice("Error", "Failed to update task", destructive=True)
        return Notice("Task Updated", "Task updated successfully")

    async def upload_image(self, image: ImageFile) -> Notice:
        self.uploading = True
        try:
            await self.manager.upload_image(image)
        except TaskmateError as e:
            return Notice("Upload Failed", str(e) or "Failed to upload image", destructive=True)
        finally:
            self.uploading = False
        return Notice("Image Uploaded", "Image uploaded successfully")

    async def remove_image(self) -> Notice:
        try:
            await self.manager.remove_image()
        except TaskmateError as e:
            return Notice("Remove Failed", str(e) or "Failed to remove image", destructive=True)
        return Notice("Image Removed", "Image removed successfully")
