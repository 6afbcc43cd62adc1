"""
Pytest configuration and fixtures for taskmate tests.
"""

import pytest
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

# Add packages to path for testing
packages_dir = Path(__file__).parent.parent / "packages"
sys.path.insert(0, str(packages_dir / "taskmate-core"))
sys.path.insert(0, str(packages_dir / "taskmate-mcp"))

sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture
def config():
    """Default configuration pointing nowhere."""
    from taskmate.config import TaskmateConfig

    return TaskmateConfig()


@pytest.fixture
def fake_backend():
    """In-memory backend that records every call."""
    from fakes import make_backend

    return make_backend(user_id="user-1")


@pytest.fixture
def manager(fake_backend, config):
    """List-mode TaskManager over the fake backend."""
    from taskmate.services.tasks import TaskManager

    return TaskManager(backend=fake_backend, config=config)


@pytest.fixture
async def local_backend():
    """Local backend (SQLite + files) in a temporary directory."""
    from taskmate.backend.factory import create_backend
    from taskmate.backend.interface import Session
    from taskmate.config import BackendConfig, TaskmateConfig

    with tempfile.TemporaryDirectory() as tmpdir:
        config = TaskmateConfig(
            backend=BackendConfig(
                type="local",
                local_path=str(Path(tmpdir) / "test.db"),
                blob_dir=str(Path(tmpdir) / "blobs"),
            ),
        )
        backend = create_backend(config, Session(user_id="user-1"))
        yield backend

        await backend.close()


@pytest.fixture
def sample_row():
    """A task row as the backend returns it."""
    return {
        "task_id": "task-1",
        "user_id": "user-1",
        "title": "Write report",
        "description": "Quarterly numbers",
        "completed": False,
        "priority": "High",
        "label": "Work",
        "due_date": "2024-03-15",
        "image_url": None,
        "created_at": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc).isoformat(),
        "updated_at": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc).isoformat(),
    }
