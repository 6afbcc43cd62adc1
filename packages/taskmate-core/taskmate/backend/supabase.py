"""
Supabase backend using httpx.

Talks to the hosted project's REST surfaces directly:
- PostgREST for the `tasks` table (/rest/v1)
- Storage for image attachments (/storage/v1)
- Edge Functions for AI-assisted task creation (/functions/v1)

Row-level security on the project scopes every request to the bearer token's
user, so the access token must belong to the session's user.
"""

import logging
from typing import Any, Optional

import httpx

from taskmate.backend.interface import BlobStore, RowStore, TaskFunction
from taskmate.errors import BackendError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response, fallback: str) -> str:
    """
    Extract the backend's error message from a failed response.

    Prefers the payload's "error", then "message"; falls back to the HTTP
    reason phrase when the body is not JSON.
    """
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or fallback

    if isinstance(data, dict):
        message = data.get("error") or data.get("message") or data.get("msg")
        if message:
            return str(message)
    return fallback


def response_json(response: httpx.Response, fallback: str) -> Any:
    """Decode a successful response body, raising BackendError if it is not JSON."""
    try:
        return response.json()
    except ValueError as e:
        raise BackendError(fallback, response.status_code) from e


def _literal(value: Any) -> str:
    """Render a filter value the way PostgREST expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class SupabaseClient:
    """
    Shared HTTP client for one Supabase project and one session.

    Sends the anon key as `apikey` and the user's access token as the bearer.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            url: Project URL (e.g., https://xyz.supabase.co)
            anon_key: Project anon (public) key
            access_token: Session access token; the anon key is used if absent
            timeout: Request timeout in seconds
            transport: Optional httpx transport (for testing)
        """
        if not url:
            raise ValueError("Supabase URL not configured. Set SUPABASE_URL or backend.supabase.url in config.")
        if not anon_key:
            raise ValueError("Supabase anon key not configured. Set SUPABASE_ANON_KEY.")

        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self._client = httpx.AsyncClient(base_url=self.url, timeout=timeout, transport=transport)

    @property
    def headers(self) -> dict:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }

    async def request(
        self,
        method: str,
        path: str,
        fallback: str = "Request failed",
        headers: Optional[dict] = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Send a request and raise BackendError on transport failure or error status.

        Args:
            method: HTTP method
            path: Path relative to the project URL
            fallback: Message used when the backend supplies none
            headers: Extra headers
            **kwargs: Passed to httpx (params, json, content)
        """
        try:
            response = await self._client.request(
                method,
                path,
                headers={**self.headers, **(headers or {})},
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise BackendError(f"{fallback}: {e}") from e

        if response.is_error:
            raise BackendError(error_message(response, fallback), response.status_code)
        return response

    async def close(self) -> None:
        await self._client.aclose()


class SupabaseRowStore(RowStore):
    """Task rows through PostgREST."""

    def __init__(self, client: SupabaseClient, table: str = "tasks"):
        self.client = client
        self.table = table

    @property
    def path(self) -> str:
        return f"/rest/v1/{self.table}"

    async def select(
        self,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict]:
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{_literal(value)}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        response = await self.client.request("GET", self.path, fallback="Failed to fetch tasks", params=params)
        return response_json(response, "Failed to fetch tasks") or []

    async def insert(self, row: dict) -> dict:
        response = await self.client.request(
            "POST",
            self.path,
            fallback="Failed to insert task",
            headers={"Prefer": "return=representation"},
            json=row,
        )
        data = response_json(response, "Failed to insert task")
        if isinstance(data, list):
            if not data:
                raise BackendError("Insert returned no rows")
            return data[0]
        return data

    async def update(self, task_id: str, patch: dict) -> None:
        await self.client.request(
            "PATCH",
            self.path,
            fallback="Failed to update task",
            headers={"Prefer": "return=minimal"},
            params={"task_id": f"eq.{task_id}"},
            json=patch,
        )

    async def delete(self, task_id: str) -> None:
        await self.client.request(
            "DELETE",
            self.path,
            fallback="Failed to delete task",
            params={"task_id": f"eq.{task_id}"},
        )


class SupabaseBlobStore(BlobStore):
    """Image attachments in a Supabase Storage bucket."""

    def __init__(self, client: SupabaseClient, bucket: str = "task-attachments"):
        self.client = client
        self.bucket = bucket

    @property
    def public_base(self) -> str:
        return f"{self.client.url}/storage/v1/object/public"

    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        await self.client.request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{path}",
            fallback="Failed to upload image",
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if overwrite else "false",
                "cache-control": "max-age=3600",
            },
            content=content,
        )
        logger.info(f"Uploaded {len(content)} bytes to {self.bucket}/{path}")

    async def remove(self, path: str) -> None:
        await self.client.request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            fallback="Failed to remove image",
            json={"prefixes": [path]},
        )
        logger.info(f"Removed {self.bucket}/{path}")


class SupabaseTaskFunction(TaskFunction):
    """The create-task-with-ai Edge Function."""

    def __init__(self, client: SupabaseClient, name: str = "create-task-with-ai"):
        self.client = client
        self.name = name

    @property
    def url(self) -> str:
        return f"{self.client.url}/functions/v1/{self.name}"

    async def create_task(self, title: str, description: str, priority: str) -> Optional[dict]:
        response = await self.client.request(
            "POST",
            f"/functions/v1/{self.name}",
            fallback="Failed to create task",
            json={"title": title, "description": description, "priority": priority},
        )
        if not response.content:
            return None
        return response_json(response, "Failed to create task")
