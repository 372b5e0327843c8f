"""Advisory lock guarding a state file for one plan/apply cycle."""

import getpass
import json
import os
import socket
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from ..utils.errors import LockHeldError, StateError
from ..utils.logging import get_logger

logger = get_logger("state.lock")


def lock_path_for(state_path: Path) -> Path:
    return state_path.with_name(state_path.name + ".lock")


class StateLock:
    """
    Lock file created with O_CREAT|O_EXCL next to the state file.

    A second holder fails fast with LockHeldError instead of waiting.
    Reentrant: nested acquire() calls on the same object only bump a counter.
    """

    def __init__(self, state_path: Path, operation: str = "cycle"):
        self.path = lock_path_for(Path(state_path))
        self.operation = operation
        self.lock_id: Optional[str] = None
        self._depth = 0

    @property
    def held(self) -> bool:
        return self._depth > 0

    def acquire(self, operation: Optional[str] = None) -> str:
        if self._depth > 0:
            self._depth += 1
            return self.lock_id

        info = {
            "id": str(uuid.uuid4()),
            "operation": operation or self.operation,
            "who": _who(),
            "pid": os.getpid(),
            "created": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockHeldError(str(self.path), read_lock_info(self.path))
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(info, f)

        self.lock_id = info["id"]
        self._depth = 1
        logger.info(f"Acquired state lock {self.lock_id} ({info['operation']})")
        return self.lock_id

    def release(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth > 0:
            return

        current = read_lock_info(self.path)
        if current.get("id") == self.lock_id:
            self.path.unlink()
            logger.info(f"Released state lock {self.lock_id}")
        else:
            logger.warning(f"State lock {self.lock_id} was replaced or removed while held")
        self.lock_id = None

    def __enter__(self) -> "StateLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def read_lock_info(lock_path: Path) -> Dict[str, Any]:
    """Return the holder info stored in a lock file (empty if unreadable)."""
    try:
        with open(lock_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return {}


def force_unlock(state_path: Path, lock_id: str) -> None:
    """
    Remove a stale lock left behind by a crashed cycle.

    Raises:
        StateError: No lock exists, or the lock id does not match
    """
    path = lock_path_for(Path(state_path))
    if not path.exists():
        raise StateError(f"No lock found at {path}")
    info = read_lock_info(path)
    if info.get("id") != lock_id:
        raise StateError(
            f"Lock id mismatch: {path} is held by {info.get('id', 'unknown')}, not {lock_id}"
        )
    path.unlink()
    logger.warning(f"Force-unlocked state lock {lock_id}")


def _who() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"
