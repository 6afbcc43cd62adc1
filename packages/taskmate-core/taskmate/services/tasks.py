"""
Task Manager for Taskmate.

Owns the client-side task state for one view and mediates every create,
read, update and delete through the session's backend. Local state only
changes after the backend has confirmed the operation.
"""

import logging
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import date, datetime, timezone
from typing import Optional

from taskmate.backend import Backend, get_backend
from taskmate.dates import DueDate
from taskmate.errors import (
    BackendError,
    CreationError,
    NoImageError,
    PersistenceError,
    TaskmateError,
    ValidationError,
)
from taskmate.filters import sort_tasks
from taskmate.models.image import ImageFile, format_size
from taskmate.models.task import TASK_PRIORITIES, Task

logger = logging.getLogger(__name__)

# Columns the client may edit locally
EDITABLE_FIELDS = frozenset(
    f.name for f in fields(Task)
    if f.name not in ("task_id", "user_id", "created_at", "updated_at")
)


class TaskManager:
    """
    Task state for either one task or the current user's task list.

    With a task_id the manager works on that single task (detail view);
    without one it manages the whole list (dashboard). Failures are logged,
    recorded in `error`, and raised to the caller, except for fetches, which
    only record them.
    """

    def __init__(self, task_id: Optional[str] = None, backend: Optional[Backend] = None, config=None):
        """
        Initialize the task manager.

        Args:
            task_id: Task to manage. None manages the user's task list.
            backend: Optional Backend. If not provided, uses the session's global backend.
            config: Optional TaskmateConfig. If not provided, uses the cached config.
        """
        self.task_id = task_id
        self._backend = backend
        self._config = config

        self.task: Optional[Task] = None
        self.tasks: list[Task] = []
        self.due: Optional[DueDate] = None
        self.error: Optional[str] = None
        self.is_loading = True

    @property
    def backend(self) -> Backend:
        """Get the backend."""
        if self._backend is None:
            self._backend = get_backend()
        return self._backend

    @property
    def config(self):
        """Get the configuration."""
        if self._config is None:
            from taskmate.config import get_config
            self._config = get_config()
        return self._config

    @property
    def mode(self) -> str:
        return "single" if self.task_id else "list"

    @property
    def status(self) -> str:
        """loading, loaded or errored."""
        if self.is_loading:
            return "loading"
        if self.mode == "single":
            return "loaded" if self.task is not None else "errored"
        return "errored" if self.error else "loaded"

    def _fail(self, action: str, error: Exception) -> None:
        logger.error(f"Error {action}: {error}")
        self.error = str(error)

    @contextmanager
    def _operation(self, action: str, wrap: type = PersistenceError):
        """Record and re-raise failures, translating backend and value errors to `wrap`."""
        try:
            yield
        except BackendError as e:
            error = wrap(e.message)
            self._fail(action, error)
            raise error from e
        except TaskmateError as e:
            self._fail(action, e)
            raise
        except ValueError as e:
            error = wrap(str(e))
            self._fail(action, error)
            raise error from e

    def _replace_local(self, task: Task) -> None:
        if self.task is not None and self.task.task_id == task.task_id:
            self.task = task
        self.tasks = [task if t.task_id == task.task_id else t for t in self.tasks]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Fetch the task or the task list, depending on the mode."""
        if self.mode == "single":
            await self.fetch_task()
        else:
            await self.fetch_tasks()

    async def fetch_task(self) -> None:
        """Fetch the managed task. Failures end in the errored state."""
        self.is_loading = True
        try:
            rows = await self.backend.rows.select({"task_id": self.task_id})
            if not rows:
                raise PersistenceError(f"Task not found: {self.task_id}")
            task = Task.from_dict(rows[0])
        except (TaskmateError, ValueError) as e:
            self._fail(f"fetching task ID {self.task_id}", e)
            self.task = None
            self.due = None
        else:
            self.task = task
            self.due = task.due
            self.error = None
        finally:
            self.is_loading = False

    async def switch_task(self, task_id: str) -> None:
        """Manage a different task; the same id is a no-op."""
        if self.mode != "single" or not task_id:
            raise ValueError("switch_task is only available when managing a single task")
        if task_id == self.task_id:
            return

        self.task_id = task_id
        self.task = None
        self.due = None
        self.error = None
        await self.fetch_task()

    async def fetch_tasks(self) -> None:
        """
        Fetch the user's tasks.

        The backend orders them newest first; they are then ordered by
        priority with newest first among equals.
        """
        try:
            rows = await self.backend.rows.select(
                {"user_id": self.backend.session.user_id},
                order_by="created_at",
                descending=True,
            )
            tasks = [Task.from_dict(row) for row in rows]
        except (TaskmateError, ValueError) as e:
            self._fail("fetching tasks", e)
        else:
            self.tasks = sort_tasks(tasks, "priority")
            self.error = None
        finally:
            self.is_loading = False

    async def refresh_tasks(self) -> None:
        self.is_loading = True
        await self.fetch_tasks()

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    def update_task(self, **changes) -> Optional[Task]:
        """Edit the loaded task locally; nothing is sent until save_task()."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
        if "priority" in changes and changes["priority"] not in TASK_PRIORITIES:
            raise ValidationError(f"Invalid priority. Must be one of: {', '.join(TASK_PRIORITIES)}")
        if self.task is None:
            return None

        self.task = replace(self.task, **changes)
        if "due_date" in changes:
            self.due = self.task.due
        return self.task

    def set_due_date(self, value: Optional[date | datetime], has_time: Optional[bool] = None) -> None:
        """
        Set the loaded task's due date locally; None clears it.

        has_time=None keeps a time only when it is not midnight.
        """
        self.due = DueDate.from_value(value, has_time) if value is not None else None

    async def save_task(self, task: Optional[Task] = None) -> Task:
        """
        Persist the loaded task, or the given one.

        The due date is re-formatted for storage and updated_at is stamped.

        Returns:
            The saved task
        """
        with self._operation("saving task"):
            target = task or self.task
            if target is None:
                raise PersistenceError("No task data to save")

            if self.task is not None and target.task_id == self.task.task_id:
                due = self.due
            else:
                due = target.due
            due_value = due.to_storage() if due is not None else None

            now = datetime.now(timezone.utc)
            await self.backend.rows.update(
                target.task_id,
                {**target.to_patch(), "due_date": due_value, "updated_at": now.isoformat()},
            )

        saved = replace(target, due_date=due_value, updated_at=now)
        self._replace_local(saved)
        self.error = None
        logger.info(f"Saved task: {saved.task_id}")
        return saved

    async def upload_image(
        self,
        image: ImageFile,
        task: Optional[Task] = None,
        max_bytes: Optional[int] = None,
    ) -> Task:
        """
        Attach an image, replacing any previous one, and save the task.

        Args:
            image: The image to upload
            task: Task to attach to. Defaults to the loaded task.
            max_bytes: Size ceiling. Defaults to uploads.detail_max_bytes.

        Returns:
            The saved task
        """
        limit = max_bytes if max_bytes is not None else self.config.uploads.detail_max_bytes

        with self._operation("uploading image"):
            if image.size > limit:
                raise ValidationError(f"File size must be less than {format_size(limit)}")
            if not image.is_supported:
                raise ValidationError(f"Unsupported image type: {image.content_type}. Use JPEG or PNG")

            target = task or self.task
            if target is None:
                raise PersistenceError("No task found")

            owner = target.user_id or self.backend.session.user_id
            path = f"{owner}/{target.task_id}.{image.extension}"
            await self.backend.blobs.upload(path, image.content, image.content_type, overwrite=True)

        updated = replace(target, image_url=path)
        self._replace_local(updated)
        return await self.save_task(updated)

    async def remove_image(self, task: Optional[Task] = None) -> Task:
        """Delete the task's image and save the task without it."""
        with self._operation("removing image"):
            target = task or self.task
            if target is None or not target.image_url:
                raise NoImageError("No image to remove")

            await self.backend.blobs.remove(target.image_url)

        updated = replace(target, image_url=None)
        self._replace_local(updated)
        return await self.save_task(updated)

    def image_public_url(self, task: Optional[Task] = None) -> Optional[str]:
        """Public URL of the task's image, if it has one."""
        target = task or self.task
        if target is None or not target.image_url:
            return None
        return self.backend.blobs.public_url(target.image_url)

    # ------------------------------------------------------------------
    # Task list
    # ------------------------------------------------------------------

    async def create_task(self, title: str, description: str = "", priority: str = "Medium") -> Task:
        """
        Create a task through the task-creation function and prepend it.

        Raises:
            ValidationError: Empty title or unknown priority
            CreationError: The function failed or returned nothing
        """
        with self._operation("creating task", wrap=CreationError):
            title = (title or "").strip()
            if not title:
                raise ValidationError("Title is required")
            if priority not in TASK_PRIORITIES:
                raise ValidationError(f"Invalid priority. Must be one of: {', '.join(TASK_PRIORITIES)}")

            data = await self.backend.functions.create_task(title, description or "", priority)
            if not data:
                raise CreationError("No data returned from server")
            try:
                task = Task.from_dict(data)
            except ValueError as e:
                raise CreationError(f"Invalid task returned from server: {e}") from e

        self.tasks = [task, *self.tasks]
        self.error = None
        logger.info(f"Created task: {task.task_id} - {task.title}")
        return task

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; the list is only updated once the backend confirms."""
        with self._operation("deleting task"):
            await self.backend.rows.delete(task_id)

        self.tasks = [t for t in self.tasks if t.task_id != task_id]
        self.error = None
        logger.info(f"Deleted task: {task_id}")

    async def toggle_task_complete(self, task_id: str, completed: bool) -> None:
        """Mark a task done or open."""
        with self._operation("updating task"):
            await self.backend.rows.update(task_id, {"completed": completed})

        if self.task is not None and self.task.task_id == task_id:
            self.task = replace(self.task, completed=completed)
        self.tasks = [replace(t, completed=completed) if t.task_id == task_id else t for t in self.tasks]
        self.error = None

    async def update_title(self, task_id: str, title: str) -> None:
        """Rename a task in place (inline edit on the task card)."""
        with self._operation("updating task"):
            title = (title or "").strip()
            if not title:
                raise ValidationError("Title is required")
            now = datetime.now(timezone.utc)
            await self.backend.rows.update(task_id, {"title": title, "updated_at": now.isoformat()})

        self.tasks = [
            replace(t, title=title, updated_at=now) if t.task_id == task_id else t
            for t in self.tasks
        ]
        if self.task is not None and self.task.task_id == task_id:
            self.task = replace(self.task, title=title, updated_at=now)
        self.error = None
