import logging
import os
import shutil
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from filevault.core.errors import WorkspaceError

logger = logging.getLogger(__name__)


def ensure_dir(path_hint: str) -> str:
    """
    Creates a directory (and parents) if needed and returns its absolute path.

    Raises:
        WorkspaceError: If the directory does not exist and cannot be created
    """
    path = os.path.abspath(path_hint)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        if not os.path.isdir(path):
            raise WorkspaceError(f"Could not create directory {path}: {e}") from e
    if not os.path.isdir(path):
        raise WorkspaceError(f"Path exists but is not a directory: {path}")
    return path


def remove_tree(path: str) -> None:
    if not path:
        return
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove workspace %s", path, exc_info=True)


def remove_file(path: str) -> bool:
    """Best-effort removal of one file. Returns True if a file was removed."""
    if not path:
        return False
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Failed to remove temp file %s", path, exc_info=True)
        return False


@asynccontextmanager
async def scoped_workspace(base_dir: str, prefix: str = "job") -> AsyncIterator[str]:
    """Yields a fresh directory under base_dir, removed on every exit path."""
    root = ensure_dir(base_dir)
    workspace = ensure_dir(os.path.join(root, f"{prefix}-{uuid.uuid4().hex}"))
    logger.debug("Acquired workspace %s", workspace)
    try:
        yield workspace
    finally:
        remove_tree(workspace)
        logger.debug("Released workspace %s", workspace)
