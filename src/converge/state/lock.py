"""Advisory lock serializing runs against one state document."""

import json
import os
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from ..utils.errors import LockHeldError, StateError
from ..utils.logging import get_logger

logger = get_logger("state.lock")


class StateLock:
    """Exclusive lock file next to the state document.

    Acquisition never waits: a held lock fails fast with LockHeldError.
    """

    def __init__(self, lock_path: Path, run_id: str, operation: str = "apply"):
        self.lock_path = Path(lock_path)
        self.run_id = run_id
        self.operation = operation
        self._held = False

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        info = {
            "run_id": self.run_id,
            "operation": self.operation,
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockHeldError(str(self.lock_path), read_lock_info(self.lock_path))
        except OSError as e:
            raise StateError(f"Failed to create lock file {self.lock_path}: {e}")

        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(info, f)
        self._held = True
        logger.debug(f"Acquired state lock {self.lock_path} for run {self.run_id}")

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.warning(f"State lock {self.lock_path} vanished before release")
        self._held = False
        logger.debug(f"Released state lock {self.lock_path}")

    def __enter__(self) -> "StateLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def read_lock_info(lock_path: Path) -> Optional[dict]:
    """Return the holder info of a lock file, if readable."""
    try:
        with open(lock_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError):
        return None
