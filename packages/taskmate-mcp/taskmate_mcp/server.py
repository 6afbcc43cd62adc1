"""
Taskmate MCP Server

Exposes the task dashboard and task-detail operations as MCP tools.
"""

import asyncio
import json
import logging
import sys
from datetime import date
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from taskmate.config import get_config
from taskmate.dates import describe_due_date, due_bucket
from taskmate.errors import TaskmateError
from taskmate.filters import TaskFilters, apply_filters, summarize
from taskmate.forms import CreateTaskForm, TaskDetailForm
from taskmate.models.image import ImageFile
from taskmate.models.task import Task
from taskmate.services import TaskManager

# Initialize FastMCP server
mcp = FastMCP("taskmate")

logger = logging.getLogger(__name__)


def _task_view(task: Task, manager: TaskManager) -> dict:
    """Task fields plus display helpers for the due date and image."""
    result = task.to_dict()
    due = task.due
    result["due_display"] = describe_due_date(due) if due else None
    result["due_status"] = due_bucket(due) if due else None
    result["image_public_url"] = manager.image_public_url(task)
    return result


def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value)


async def _load(task_id: str) -> TaskManager:
    manager = TaskManager(task_id)
    await manager.load()
    return manager


# =============================================================================
# TASK LIST TOOLS
# =============================================================================

@mcp.tool()
async def taskmate_list(
    status: str = "all",
    labels: Optional[List[str]] = None,
    priorities: Optional[List[str]] = None,
    due_date: str = "all",
    sort_by: str = "newest",
) -> dict:
    """
    List your tasks with optional filters.

    Args:
        status: all, open or completed
        labels: Only tasks with one of these labels
        priorities: Only tasks with one of these priorities (Low, Medium, High)
        due_date: all, overdue, today, tomorrow or upcoming
        sort_by: newest, oldest, priority, dueDate or title

    Returns:
        Matching tasks and dashboard counters
    """
    try:
        filters = TaskFilters(
            status=status,
            labels=frozenset(labels or ()),
            priorities=frozenset(priorities or ()),
            due_date=due_date,
            sort_by=sort_by,
        )
    except TaskmateError as e:
        return {"error": str(e)}

    manager = TaskManager()
    await manager.fetch_tasks()
    if manager.error:
        return {"error": manager.error}

    tasks = apply_filters(manager.tasks, filters)
    return {
        "tasks": [_task_view(t, manager) for t in tasks],
        "count": len(tasks),
        "summary": summarize(manager.tasks).to_dict(),
    }


@mcp.tool()
async def taskmate_stats() -> dict:
    """
    Dashboard counters: total, completed, open and progress percentage.
    """
    manager = TaskManager()
    await manager.fetch_tasks()
    if manager.error:
        return {"error": manager.error}
    return summarize(manager.tasks).to_dict()


@mcp.tool()
async def taskmate_create(
    title: str,
    description: str = "",
    priority: str = "Medium",
    due_date: Optional[str] = None,
    due_time: Optional[str] = None,
    image_path: Optional[str] = None,
) -> dict:
    """
    Create a new task (the backend may enrich it with AI).

    Args:
        title: Task title
        description: Task description
        priority: Low, Medium or High
        due_date: Optional due date (YYYY-MM-DD), not in the past
        due_time: Optional due time (HH:MM)
        image_path: Optional JPEG/PNG file to attach

    Returns:
        Created task details
    """
    if due_time and not due_date:
        return {"error": "due_time requires due_date"}

    form = CreateTaskForm.from_config(get_config())
    form.title = title
    form.description = description
    form.priority = priority

    try:
        day = _parse_day(due_date)
        if day is not None and form.is_date_disabled(day):
            return {"error": f"Due date is in the past: {due_date}"}
        form.select_date(day)
        if due_time and not form.change_time(due_time):
            return {"error": f"Due time is in the past: {due_time}"}
        if image_path:
            form.attach_image(ImageFile.from_path(image_path))

        manager = TaskManager()
        task = await form.submit(manager)
    except (TaskmateError, ValueError, OSError) as e:
        return {"error": str(e)}

    return _task_view(task, manager)


@mcp.tool()
async def taskmate_complete(task_id: str, completed: bool = True) -> dict:
    """
    Mark a task as completed (or open again).

    Args:
        task_id: Task ID
        completed: True for done, False to reopen
    """
    manager = TaskManager()
    try:
        await manager.toggle_task_complete(task_id, completed)
    except TaskmateError as e:
        return {"error": str(e)}
    return {"task_id": task_id, "completed": completed}


@mcp.tool()
async def taskmate_delete(task_id: str) -> dict:
    """
    Delete a task permanently.

    Args:
        task_id: Task ID
    """
    manager = TaskManager()
    try:
        await manager.delete_task(task_id)
    except TaskmateError as e:
        return {"error": str(e)}
    return {"task_id": task_id, "deleted": True}


# =============================================================================
# TASK DETAIL TOOLS
# =============================================================================

@mcp.tool()
async def taskmate_show(task_id: str) -> dict:
    """
    Get detailed information about a task.

    Args:
        task_id: Task ID

    Returns:
        Full task details
    """
    manager = await _load(task_id)
    if manager.task is None:
        return {"error": manager.error or f"Task not found: {task_id}"}
    return _task_view(manager.task, manager)


@mcp.tool()
async def taskmate_update(
    task_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    label: Optional[str] = None,
    completed: Optional[bool] = None,
    due_date: Optional[str] = None,
    due_time: Optional[str] = None,
) -> dict:
    """
    Update an existing task.

    Args:
        task_id: Task ID
        title: New title
        description: New description
        priority: Low, Medium or High
        label: New label
        completed: Mark as completed
        due_date: New due date (YYYY-MM-DD); empty string clears it
        due_time: Time for the new due date (HH:MM)

    Returns:
        Updated task details
    """
    if due_time and not due_date:
        return {"error": "due_time requires due_date"}

    manager = await _load(task_id)
    if manager.task is None:
        return {"error": manager.error or f"Task not found: {task_id}"}

    form = TaskDetailForm(manager)
    changes = {
        "title": title,
        "description": description,
        "priority": priority,
        "label": label,
        "completed": completed,
    }
    try:
        form.edit(**{k: v for k, v in changes.items() if v is not None})
        if due_date is not None:
            form.set_due(_parse_day(due_date), due_time)
    except (TaskmateError, ValueError) as e:
        return {"error": str(e)}

    notice = await form.save()
    if notice.destructive:
        return {"error": manager.error or notice.description}
    return _task_view(manager.task, manager)


@mcp.tool()
async def taskmate_attach_image(task_id: str, image_path: str) -> dict:
    """
    Attach an image to a task, replacing any existing one.

    Args:
        task_id: Task ID
        image_path: JPEG or PNG file
    """
    manager = await _load(task_id)
    if manager.task is None:
        return {"error": manager.error or f"Task not found: {task_id}"}

    try:
        image = ImageFile.from_path(image_path)
    except OSError as e:
        return {"error": f"Could not read image: {e}"}

    notice = await TaskDetailForm(manager).upload_image(image)
    if notice.destructive:
        return {"error": notice.description}
    return _task_view(manager.task, manager)


@mcp.tool()
async def taskmate_remove_image(task_id: str) -> dict:
    """
    Remove a task's image.

    Args:
        task_id: Task ID
    """
    manager = await _load(task_id)
    if manager.task is None:
        return {"error": manager.error or f"Task not found: {task_id}"}

    notice = await TaskDetailForm(manager).remove_image()
    if notice.destructive:
        return {"error": notice.description}
    return _task_view(manager.task, manager)


# =============================================================================
# HEALTH
# =============================================================================

@mcp.tool()
async def taskmate_health() -> dict:
    """
    Check configuration and backend connectivity.
    """
    config = get_config()
    result = {
        "backend": config.backend.type,
        "user_id": config.user_id,
    }

    manager = TaskManager()
    await manager.fetch_tasks()
    if manager.error:
        return {**result, "healthy": False, "error": manager.error}
    return {**result, "healthy": True, "task_count": len(manager.tasks)}


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """Main entry point for taskmate-mcp command."""
    import argparse

    parser = argparse.ArgumentParser(description="Taskmate MCP Server")
    parser.add_argument("command", nargs="?", default="serve", help="Command to run (serve, config, health)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    # stdout carries the MCP stdio transport
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "config":
        print(json.dumps(get_config().to_dict(), indent=2))
    elif args.command == "health":
        print(json.dumps(asyncio.run(taskmate_health()), indent=2))
    else:
        mcp.run()


if __name__ == "__main__":
    main()
