"""
Tests for TaskManager.
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from fakes import make_backend


def rows_for(*specs):
    """Backend rows: (task_id, priority, hours after base, completed)."""
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    return [
        {
            "task_id": task_id,
            "user_id": "user-1",
            "title": f"Task {task_id}",
            "priority": priority,
            "completed": completed,
            "created_at": (base + timedelta(hours=hours)).isoformat(),
        }
        for task_id, priority, hours, completed in specs
    ]


@pytest.fixture
def single(sample_row, config):
    """Single-task manager over a backend holding sample_row."""
    from taskmate.services.tasks import TaskManager

    backend = make_backend([sample_row])
    return TaskManager("task-1", backend=backend, config=config)


class TestTaskManagerState:
    """Tests for the mode and status of a manager."""

    def test_initial_state(self, manager):
        assert manager.mode == "list"
        assert manager.status == "loading"
        assert manager.tasks == []
        assert manager.error is None

    @pytest.mark.asyncio
    async def test_single_loaded(self, single):
        await single.load()

        assert single.mode == "single"
        assert single.status == "loaded"
        assert single.task.title == "Write report"
        assert single.due.day == date(2024, 3, 15)

    @pytest.mark.asyncio
    async def test_single_not_found(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager("missing", backend=make_backend(), config=config)
        await manager.load()

        assert manager.status == "errored"
        assert manager.task is None
        assert "missing" in manager.error

    @pytest.mark.asyncio
    async def test_single_fetch_error_is_recorded_not_raised(self, single):
        single.backend.rows.fail_with = "JWT expired"

        await single.fetch_task()

        assert single.status == "errored"
        assert single.error == "JWT expired"

    @pytest.mark.asyncio
    async def test_switch_task(self, sample_row, config):
        from taskmate.services.tasks import TaskManager

        other = dict(sample_row, task_id="task-2", title="Other")
        manager = TaskManager("task-1", backend=make_backend([sample_row, other]), config=config)
        await manager.load()

        await manager.switch_task("task-2")

        assert manager.task_id == "task-2"
        assert manager.task.title == "Other"

    @pytest.mark.asyncio
    async def test_switch_task_same_id_is_noop(self, single):
        await single.load()
        calls = len(single.backend.rows.calls)

        await single.switch_task("task-1")

        assert len(single.backend.rows.calls) == calls

    @pytest.mark.asyncio
    async def test_switch_task_requires_single_mode(self, manager):
        with pytest.raises(ValueError):
            await manager.switch_task("task-1")


class TestFetchTasks:
    """Tests for TaskManager.fetch_tasks()."""

    @pytest.mark.asyncio
    async def test_scoped_to_session_user_newest_first(self, manager):
        await manager.fetch_tasks()

        assert manager.backend.rows.calls[0] == ("select", {"user_id": "user-1"}, "created_at", True)
        assert manager.status == "loaded"

    @pytest.mark.asyncio
    async def test_ordered_by_priority_then_newest(self, config):
        from taskmate.services.tasks import TaskManager

        backend = make_backend(rows_for(
            ("low", "Low", 5, False),
            ("high-old", "High", 1, False),
            ("med", "Medium", 3, False),
            ("high-new", "High", 4, False),
        ))
        manager = TaskManager(backend=backend, config=config)

        await manager.fetch_tasks()

        assert [t.task_id for t in manager.tasks] == ["high-new", "high-old", "med", "low"]

    @pytest.mark.asyncio
    async def test_other_users_rows_excluded(self, config):
        from taskmate.services.tasks import TaskManager

        rows = rows_for(("mine", "Low", 1, False), ("theirs", "Low", 2, False))
        rows[1]["user_id"] = "user-2"
        manager = TaskManager(backend=make_backend(rows), config=config)

        await manager.fetch_tasks()

        assert [t.task_id for t in manager.tasks] == ["mine"]

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_list(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()

        manager.backend.rows.fail_with = "network down"
        await manager.refresh_tasks()

        assert manager.error == "network down"
        assert manager.status == "errored"
        assert [t.task_id for t in manager.tasks] == ["a"]


class TestUpdateAndSave:
    """Tests for local edits and save_task()."""

    @pytest.mark.asyncio
    async def test_update_task_is_local_only(self, single):
        await single.load()

        task = single.update_task(title="Edited", priority="Low")

        assert task.title == "Edited"
        assert single.task.priority == "Low"
        assert not any(call[0] == "update" for call in single.backend.rows.calls)

    @pytest.mark.asyncio
    async def test_update_task_rejects_unknown_fields(self, single):
        from taskmate.errors import ValidationError

        await single.load()

        with pytest.raises(ValidationError):
            single.update_task(user_id="someone-else")
        with pytest.raises(ValidationError):
            single.update_task(priority="Urgent")

    def test_update_without_task(self, single):
        assert single.update_task(title="x") is None

    @pytest.mark.asyncio
    async def test_save_persists_patch_and_timestamp(self, single):
        await single.load()
        single.update_task(description="Updated notes")

        saved = await single.save_task()

        call = single.backend.rows.calls[-1]
        assert call[0] == "update"
        assert call[1] == "task-1"
        assert call[2]["description"] == "Updated notes"
        assert call[2]["due_date"] == "2024-03-15"
        assert "updated_at" in call[2]
        assert "user_id" not in call[2]
        assert saved.updated_at is not None
        assert single.task == saved

    @pytest.mark.asyncio
    async def test_save_keeps_recorded_offset(self, sample_row, config):
        """Test an untouched timed due date is written back unchanged."""
        from taskmate.services.tasks import TaskManager

        sample_row["due_date"] = "2024-03-15T14:30:00-07:00"
        manager = TaskManager("task-1", backend=make_backend([sample_row]), config=config)
        await manager.load()

        await manager.save_task()

        assert manager.backend.rows.calls[-1][2]["due_date"] == "2024-03-15T14:30:00-07:00"

    @pytest.mark.asyncio
    async def test_set_due_date(self, single):
        await single.load()

        single.set_due_date(datetime(2024, 4, 2, 9, 0, tzinfo=timezone(timedelta(hours=2))))
        await single.save_task()

        assert single.task.due_date == "2024-04-02T09:00:00+02:00"

    @pytest.mark.asyncio
    async def test_clear_due_date(self, single):
        await single.load()

        single.set_due_date(None)
        await single.save_task()

        assert single.backend.rows.calls[-1][2]["due_date"] is None
        assert single.task.due is None

    @pytest.mark.asyncio
    async def test_save_failure(self, single):
        from taskmate.errors import PersistenceError

        await single.load()
        single.update_task(title="Will not stick")
        single.backend.rows.fail_with = "permission denied"

        with pytest.raises(PersistenceError, match="permission denied"):
            await single.save_task()
        assert single.error == "permission denied"

    @pytest.mark.asyncio
    async def test_save_without_task(self, manager):
        from taskmate.errors import PersistenceError

        with pytest.raises(PersistenceError, match="No task data"):
            await manager.save_task()


class TestImages:
    """Tests for upload_image() and remove_image()."""

    @pytest.mark.asyncio
    async def test_upload(self, single):
        from taskmate.models.image import ImageFile

        await single.load()

        task = await single.upload_image(ImageFile("photo.png", b"png-bytes", "image/png"))

        assert single.backend.blobs.calls == [("upload", "user-1/task-1.png", "image/png", True)]
        assert task.image_url == "user-1/task-1.png"
        assert single.backend.rows.calls[-1][2]["image_url"] == "user-1/task-1.png"
        assert single.image_public_url() == (
            "https://example.supabase.co/storage/v1/object/public/task-attachments/user-1/task-1.png"
        )

    @pytest.mark.asyncio
    async def test_upload_too_large(self, single):
        from taskmate.errors import ValidationError
        from taskmate.models.image import ImageFile

        await single.load()
        image = ImageFile("big.jpg", b"x" * (1024 * 1024 + 1), "image/jpeg")

        with pytest.raises(ValidationError, match="less than 1MB"):
            await single.upload_image(image)
        assert single.backend.blobs.calls == []
        assert single.error == "File size must be less than 1MB"

    @pytest.mark.asyncio
    async def test_upload_exactly_at_limit(self, single):
        from taskmate.models.image import ImageFile

        await single.load()
        image = ImageFile("edge.jpg", b"x" * (1024 * 1024), "image/jpeg")

        task = await single.upload_image(image)

        assert task.image_url == "user-1/task-1.jpg"

    @pytest.mark.asyncio
    async def test_upload_unsupported_type(self, single):
        from taskmate.errors import ValidationError
        from taskmate.models.image import ImageFile

        await single.load()

        with pytest.raises(ValidationError, match="JPEG or PNG"):
            await single.upload_image(ImageFile("anim.gif", b"GIF89a", "image/gif"))

    @pytest.mark.asyncio
    async def test_upload_without_task(self, manager):
        from taskmate.errors import PersistenceError
        from taskmate.models.image import ImageFile

        with pytest.raises(PersistenceError, match="No task found"):
            await manager.upload_image(ImageFile("a.png", b"x", "image/png"))

    @pytest.mark.asyncio
    async def test_upload_storage_failure(self, single):
        from taskmate.errors import PersistenceError
        from taskmate.models.image import ImageFile

        await single.load()
        single.backend.blobs.fail_with = "Bucket not found"

        with pytest.raises(PersistenceError, match="Bucket not found"):
            await single.upload_image(ImageFile("a.png", b"x", "image/png"))
        assert single.task.image_url is None

    @pytest.mark.asyncio
    async def test_remove(self, sample_row, config):
        from taskmate.services.tasks import TaskManager

        sample_row["image_url"] = "user-1/task-1.jpg"
        manager = TaskManager("task-1", backend=make_backend([sample_row]), config=config)
        await manager.load()

        task = await manager.remove_image()

        assert manager.backend.blobs.calls == [("remove", "user-1/task-1.jpg")]
        assert task.image_url is None
        assert manager.backend.rows.calls[-1][2]["image_url"] is None
        assert manager.image_public_url() is None

    @pytest.mark.asyncio
    async def test_remove_without_image(self, single):
        from taskmate.errors import NoImageError

        await single.load()

        with pytest.raises(NoImageError):
            await single.remove_image()
        assert single.backend.blobs.calls == []


class TestListOperations:
    """Tests for create, delete, complete and rename."""

    @pytest.mark.asyncio
    async def test_create_prepends(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("old", "High", 1, False))), config=config)
        await manager.fetch_tasks()

        task = await manager.create_task("  Buy milk  ", "2 litres", "Low")

        assert manager.backend.functions.calls == [("Buy milk", "2 litres", "Low")]
        assert task.title == "Buy milk"
        assert [t.task_id for t in manager.tasks] == [task.task_id, "old"]

    @pytest.mark.asyncio
    async def test_create_requires_title(self, manager):
        from taskmate.errors import ValidationError

        with pytest.raises(ValidationError, match="Title is required"):
            await manager.create_task("   ")
        assert manager.backend.functions.calls == []

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_priority(self, manager):
        from taskmate.errors import ValidationError

        with pytest.raises(ValidationError):
            await manager.create_task("Title", priority="Urgent")

    @pytest.mark.asyncio
    async def test_create_function_error(self, manager):
        from taskmate.errors import CreationError

        manager.backend.functions.fail_with = "OpenAI quota exceeded"

        with pytest.raises(CreationError, match="OpenAI quota exceeded"):
            await manager.create_task("Title")
        assert manager.tasks == []
        assert manager.error == "OpenAI quota exceeded"

    @pytest.mark.asyncio
    async def test_create_no_data(self, manager):
        from taskmate.errors import CreationError

        manager.backend.functions.returns_nothing = True

        with pytest.raises(CreationError, match="No data returned from server"):
            await manager.create_task("Title")

    @pytest.mark.asyncio
    async def test_delete(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False), ("b", "Low", 2, False))), config=config)
        await manager.fetch_tasks()

        await manager.delete_task("a")

        assert [t.task_id for t in manager.tasks] == ["b"]
        assert manager.backend.rows.calls[-1] == ("delete", "a")

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_task(self, config):
        from taskmate.errors import PersistenceError
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()
        manager.backend.rows.fail_with = "denied"

        with pytest.raises(PersistenceError):
            await manager.delete_task("a")
        assert [t.task_id for t in manager.tasks] == ["a"]

    @pytest.mark.asyncio
    async def test_toggle_complete(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()

        await manager.toggle_task_complete("a", True)

        assert manager.tasks[0].completed is True
        assert manager.backend.rows.calls[-1] == ("update", "a", {"completed": True})

    @pytest.mark.asyncio
    async def test_toggle_failure_leaves_state(self, config):
        from taskmate.errors import PersistenceError
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()
        manager.backend.rows.fail_with = "denied"

        with pytest.raises(PersistenceError):
            await manager.toggle_task_complete("a", True)
        assert manager.tasks[0].completed is False

    @pytest.mark.asyncio
    async def test_update_title(self, config):
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()

        await manager.update_title("a", " Renamed ")

        assert manager.tasks[0].title == "Renamed"
        call = manager.backend.rows.calls[-1]
        assert call[2]["title"] == "Renamed"
        assert "updated_at" in call[2]

    @pytest.mark.asyncio
    async def test_update_title_empty(self, manager):
        from taskmate.errors import ValidationError

        with pytest.raises(ValidationError):
            await manager.update_title("a", "  ")

    @pytest.mark.asyncio
    async def test_delete_unknown_id(self, config):
        """Test deleting an id not in the list still reaches the backend."""
        from taskmate.services.tasks import TaskManager

        manager = TaskManager(backend=make_backend(rows_for(("a", "Low", 1, False))), config=config)
        await manager.fetch_tasks()

        await manager.delete_task("ghost")

        assert manager.backend.rows.calls[-1] == ("delete", "ghost")
        assert [t.task_id for t in manager.tasks] == ["a"]


class TestUnexpectedFailures:
    """Failures outside the backend still end in a recorded, wrapped error."""

    @pytest.mark.asyncio
    async def test_unconfigured_session_on_delete(self, config, monkeypatch):
        from taskmate.errors import PersistenceError
        from taskmate.services import tasks as tasks_module

        def no_user():
            raise ValueError("No user configured.")

        monkeypatch.setattr(tasks_module, "get_backend", no_user)
        manager = tasks_module.TaskManager(config=config)

        with pytest.raises(PersistenceError, match="No user configured"):
            await manager.delete_task("a")
        assert manager.error == "No user configured."

        with pytest.raises(PersistenceError):
            await manager.toggle_task_complete("a", True)

    @pytest.mark.asyncio
    async def test_created_row_without_id(self, manager, monkeypatch):
        from taskmate.errors import CreationError

        async def no_id(title, description, priority):
            return {"title": title}

        monkeypatch.setattr(manager.backend.functions, "create_task", no_id)

        with pytest.raises(CreationError, match="task_id"):
            await manager.create_task("Title")
        assert manager.tasks == []
        assert "task_id" in manager.error
