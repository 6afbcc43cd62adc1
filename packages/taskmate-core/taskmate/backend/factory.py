"""
Backend factory.

Creates the appropriate backend based on configuration.
"""

import logging

from taskmate.backend.interface import Backend, Session

logger = logging.getLogger(__name__)

# Global backend instance, one per session
_backend: Backend | None = None


def session_from_config(config) -> Session:
    """
    Build the session from configured credentials.

    Raises:
        ValueError: If no user id is configured
    """
    if not config.auth.user_id:
        raise ValueError(
            "No user configured. "
            "Set auth.user_id in config or the TASKMATE_USER_ID env var."
        )
    return Session(user_id=config.auth.user_id, access_token=config.auth.access_token)


def create_backend(config=None, session: Session | None = None) -> Backend:
    """
    Create a backend for a session.

    Args:
        config: Optional TaskmateConfig. If not provided, loads from default location.
        session: Optional Session. Defaults to the configured credentials.

    Returns:
        Backend bundling row store, blob store and task function

    Raises:
        ValueError: If backend configuration is invalid
    """
    if config is None:
        from taskmate.config import load_config
        config = load_config()

    if session is None:
        session = session_from_config(config)

    backend_type = config.backend.type.lower()

    if backend_type == "supabase":
        from taskmate.backend.supabase import (
            SupabaseBlobStore,
            SupabaseClient,
            SupabaseRowStore,
            SupabaseTaskFunction,
        )

        client = SupabaseClient(
            config.backend.supabase_url,
            config.backend.anon_key,
            access_token=session.access_token,
        )
        backend = Backend(
            rows=SupabaseRowStore(client),
            blobs=SupabaseBlobStore(client, config.backend.bucket),
            functions=SupabaseTaskFunction(client, config.backend.function),
            session=session,
            closer=client.close,
        )
        logger.info(f"Using Supabase backend: {client.url}")

    elif backend_type == "local":
        from taskmate.backend.local import FileBlobStore, LocalTaskFunction, SQLiteRowStore

        rows = SQLiteRowStore(config.backend.local_path, session)
        backend = Backend(
            rows=rows,
            blobs=FileBlobStore(config.backend.blob_dir, config.backend.bucket),
            functions=LocalTaskFunction(rows),
            session=session,
            closer=rows.close,
        )
        logger.info(f"Using local backend: {config.backend.local_path}")

    else:
        raise ValueError(
            f"Unknown backend type: {backend_type}. "
            "Use 'supabase' or 'local'."
        )

    return backend


def get_backend(config=None) -> Backend:
    """
    Get or create the session's backend.

    Returns the same instance on subsequent calls until reset_backend().
    """
    global _backend

    if _backend is None:
        _backend = create_backend(config)
    return _backend


async def close_backend() -> None:
    """Close the global backend's connections."""
    global _backend

    if _backend is not None:
        await _backend.close()
        _backend = None


def reset_backend() -> None:
    """
    Reset the global backend instance.

    Useful for testing or when the session changes.
    """
    global _backend
    _backend = None
