"""
Taskmate Configuration

Loads settings from ~/.taskmate/config.yaml with environment variable overrides.
Supports both the hosted Supabase backend and the local SQLite backend.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional
import os
import logging

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".taskmate"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_BUCKET = "task-attachments"
DEFAULT_FUNCTION = "create-task-with-ai"

# Upload ceilings differ between the task-detail page and the create dialog
DETAIL_MAX_BYTES = 1024 * 1024
CREATE_MAX_BYTES = 5 * 1024 * 1024


@dataclass
class BackendConfig:
    """Backend configuration settings."""

    type: str = "supabase"  # "supabase" or "local"
    supabase_url: Optional[str] = None
    anon_key: Optional[str] = None
    bucket: str = DEFAULT_BUCKET
    function: str = DEFAULT_FUNCTION
    local_path: str = "~/.taskmate/taskmate.db"
    blob_dir: str = "~/.taskmate/attachments"


@dataclass
class AuthConfig:
    """Session credentials for the authenticated user."""

    user_id: Optional[str] = None
    access_token: Optional[str] = None


@dataclass
class UploadConfig:
    """Image attachment limits, in bytes."""

    detail_max_bytes: int = DETAIL_MAX_BYTES
    create_max_bytes: int = CREATE_MAX_BYTES


@dataclass
class TaskmateConfig:
    """
    Complete Taskmate configuration.

    Loaded from ~/.taskmate/config.yaml with environment variable overrides.
    """

    backend: BackendConfig = field(default_factory=BackendConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    uploads: UploadConfig = field(default_factory=UploadConfig)

    @property
    def user_id(self) -> Optional[str]:
        return self.auth.user_id

    def to_dict(self) -> dict:
        """Convert to dictionary for display (masks secrets)."""
        result = asdict(self)

        for section, key in (("backend", "anon_key"), ("auth", "access_token")):
            value = result[section].get(key)
            if value:
                result[section][key] = value[:8] + "..." if len(value) > 16 else "***"

        return result


def _parse_backend_config(data: dict) -> BackendConfig:
    """Parse backend configuration from YAML data."""
    backend_data = data.get("backend", {})

    supabase = backend_data.get("supabase", {})
    anon_key = supabase.get("anon_key")
    key_env = supabase.get("anon_key_env")
    if key_env and not anon_key:
        anon_key = os.environ.get(key_env)

    local = backend_data.get("local", {})

    return BackendConfig(
        type=backend_data.get("type", "supabase"),
        supabase_url=supabase.get("url"),
        anon_key=anon_key,
        bucket=supabase.get("bucket", DEFAULT_BUCKET),
        function=supabase.get("function", DEFAULT_FUNCTION),
        local_path=local.get("path", "~/.taskmate/taskmate.db"),
        blob_dir=local.get("blob_dir", "~/.taskmate/attachments"),
    )


def _parse_auth_config(data: dict) -> AuthConfig:
    """Parse auth configuration from YAML data."""
    auth_data = data.get("auth", {})

    access_token = auth_data.get("access_token")
    token_env = auth_data.get("access_token_env")
    if token_env and not access_token:
        access_token = os.environ.get(token_env)

    return AuthConfig(
        user_id=auth_data.get("user_id"),
        access_token=access_token,
    )


def _parse_upload_config(data: dict) -> UploadConfig:
    """Parse upload limits from YAML data."""
    uploads = data.get("uploads", {})

    return UploadConfig(
        detail_max_bytes=int(uploads.get("detail_max_bytes", DETAIL_MAX_BYTES)),
        create_max_bytes=int(uploads.get("create_max_bytes", CREATE_MAX_BYTES)),
    )


def load_config(config_path: Optional[Path] = None) -> TaskmateConfig:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Optional path to config file. Defaults to ~/.taskmate/config.yaml

    Returns:
        TaskmateConfig instance
    """
    config_file = config_path or CONFIG_FILE
    config = TaskmateConfig()

    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}

            config.backend = _parse_backend_config(data)
            config.auth = _parse_auth_config(data)
            config.uploads = _parse_upload_config(data)

        except yaml.YAMLError as e:
            logger.warning(f"Could not parse config file at {config_file}: {e}")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Unexpected error loading config from {config_file}: {e}")

    # Environment variable overrides
    if os.environ.get("SUPABASE_URL"):
        config.backend.type = "supabase"
        config.backend.supabase_url = os.environ["SUPABASE_URL"]

    if os.environ.get("SUPABASE_ANON_KEY"):
        config.backend.anon_key = os.environ["SUPABASE_ANON_KEY"]

    if os.environ.get("TASKMATE_BACKEND"):
        config.backend.type = os.environ["TASKMATE_BACKEND"]

    if os.environ.get("TASKMATE_USER_ID"):
        config.auth.user_id = os.environ["TASKMATE_USER_ID"]

    if os.environ.get("TASKMATE_ACCESS_TOKEN"):
        config.auth.access_token = os.environ["TASKMATE_ACCESS_TOKEN"]

    return config


def save_config(config: TaskmateConfig, config_path: Optional[Path] = None) -> None:
    """
    Save configuration to file.

    Secrets are never written; they are expected to come from the environment.

    Args:
        config: TaskmateConfig instance to save
        config_path: Optional path to config file. Defaults to ~/.taskmate/config.yaml
    """
    config_file = config_path or CONFIG_FILE

    config_file.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "backend": {
            "type": config.backend.type,
        },
        "auth": {
            "access_token_env": "TASKMATE_ACCESS_TOKEN",
        },
        "uploads": {
            "detail_max_bytes": config.uploads.detail_max_bytes,
            "create_max_bytes": config.uploads.create_max_bytes,
        },
    }

    if config.backend.type == "local":
        data["backend"]["local"] = {
            "path": config.backend.local_path,
            "blob_dir": config.backend.blob_dir,
        }
    else:
        data["backend"]["supabase"] = {
            "url": config.backend.supabase_url,
            "anon_key_env": "SUPABASE_ANON_KEY",
            "bucket": config.backend.bucket,
            "function": config.backend.function,
        }

    if config.auth.user_id:
        data["auth"]["user_id"] = config.auth.user_id

    with open(config_file, 'w') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    # Secure permissions (readable only by owner)
    config_file.chmod(0o600)

    logger.info(f"Configuration saved to {config_file}")


# Cached config instance
_config: Optional[TaskmateConfig] = None


def get_config() -> TaskmateConfig:
    """Get cached config instance, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> TaskmateConfig:
    """Force reload config from file."""
    global _config
    _config = load_config()
    return _config
