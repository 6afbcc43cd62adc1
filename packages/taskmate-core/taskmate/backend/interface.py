"""
Abstract backend interfaces.

The hosted backend is seen through three capabilities: a row store for task
records, a blob store for image attachments, and the remote task-creation
function. A Backend bundles one of each with the session they act for.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional


@dataclass(frozen=True)
class Session:
    """
    The authenticated principal every backend call is scoped to.

    Attributes:
        user_id: Owner identifier
        access_token: Bearer token for the backend
    """

    user_id: str
    access_token: str | None = None


class RowStore(ABC):
    """Structured records (the `tasks` table), keyed by task_id."""

    @abstractmethod
    async def select(
        self,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = True,
    ) -> list[dict]:
        """
        Fetch rows matching all equality filters.

        Args:
            filters: Column -> value equality conditions
            order_by: Column to order by
            descending: Order direction

        Returns:
            List of row dicts
        """
        pass

    @abstractmethod
    async def insert(self, row: dict) -> dict:
        """Insert a row and return it as stored (with backend-assigned columns)."""
        pass

    @abstractmethod
    async def update(self, task_id: str, patch: dict) -> None:
        """Apply a partial update to one row."""
        pass

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        """Delete one row. Deleting a missing row is not an error."""
        pass


class BlobStore(ABC):
    """Binary attachments addressed by path inside one bucket."""

    bucket: str

    @abstractmethod
    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        """Store bytes at path, replacing any existing object when overwrite is set."""
        pass

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the object at path."""
        pass

    @property
    @abstractmethod
    def public_base(self) -> str:
        """Base of the public read URL."""
        pass

    def public_url(self, path: str) -> str:
        """Public read URL: {base}/{bucket}/{path}."""
        return f"{self.public_base.rstrip('/')}/{self.bucket}/{path.lstrip('/')}"


class TaskFunction(ABC):
    """The remote task-creation function."""

    @abstractmethod
    async def create_task(self, title: str, description: str, priority: str) -> dict | None:
        """
        Create a task server-side.

        Returns:
            The full task row, or None if the function returned nothing
        """
        pass


@dataclass
class Backend:
    """
    Backend capabilities scoped to one session.

    Constructed once per session and handed to the TaskManager.
    """

    rows: RowStore
    blobs: BlobStore
    functions: TaskFunction
    session: Session
    closer: Optional[Callable[[], Awaitable[None]]] = None

    async def close(self) -> None:
        """Release connections held by the capabilities."""
        if self.closer is not None:
            await self.closer()
