"""Durable state store: (kind, name) -> provider identifier and last-applied attributes."""

import json
import os
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import StateError, StateVersionError
from ..utils.logging import get_logger
from .lock import StateLock, read_lock_info
from .models import STATE_FORMAT_VERSION, StateDocument, StateRecord

logger = get_logger("state.store")


class StateStore:
    """
    File-backed state store.

    The document is read once by load() and rewritten atomically after every
    put/remove, so an interrupted run loses at most the action in flight.
    Writes are serialized with a thread lock because actions may complete
    concurrently; runs are serialized with the advisory lock from lock().
    """

    def __init__(self, path: str, backup: bool = True):
        self.path = Path(path)
        self.backup = backup
        self._document = StateDocument()
        self._write_lock = threading.RLock()
        self._backed_up = False

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")

    @property
    def serial(self) -> int:
        return self._document.serial

    @property
    def lineage(self) -> str:
        return self._document.lineage

    def load(self) -> "StateStore":
        """
        Read the whole state document.

        Raises:
            StateError: If the document is unreadable or malformed
            StateVersionError: If the format version is not supported
        """
        with self._write_lock:
            self._backed_up = False
            if not self.path.exists():
                logger.info(f"No state at {self.path}; starting empty")
                self._document = StateDocument()
                return self

            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise StateError(f"State file {self.path} is not valid JSON: {e}")
            except OSError as e:
                raise StateError(f"Error reading state file {self.path}: {e}")

            data = migrate_document(data)
            try:
                self._document = StateDocument(**data)
            except PydanticValidationError as e:
                raise StateError(f"State file {self.path} is malformed: {e}")

            logger.info(
                f"Loaded state from {self.path} "
                f"(serial {self._document.serial}, {len(self._document.records)} records)"
            )
            return self

    def get(self, kind: str, name: str) -> Optional[StateRecord]:
        return self.get_address(f"{kind}.{name}")

    def get_address(self, address: str) -> Optional[StateRecord]:
        with self._write_lock:
            record = self._document.records.get(address)
            return record.model_copy(deep=True) if record else None

    def records(self) -> List[StateRecord]:
        """All records, sorted by address."""
        with self._write_lock:
            return [
                self._document.records[address].model_copy(deep=True)
                for address in sorted(self._document.records)
            ]

    def put(self, record: StateRecord) -> None:
        """Insert or replace a record and persist."""
        with self._write_lock:
            self._document.records[record.address] = record.model_copy(deep=True)
            self._write()
        logger.debug(f"State put {record.address} ({record.status.value}, id={record.identifier})")

    def remove(self, kind: str, name: str) -> None:
        """Remove a record (if present) and persist."""
        address = f"{kind}.{name}"
        with self._write_lock:
            if self._document.records.pop(address, None) is None:
                return
            self._write()
        logger.debug(f"State removed {address}")

    def lock(self, run_id: Optional[str] = None, operation: str = "apply") -> StateLock:
        """Advisory lock for a whole run; use as a context manager."""
        return StateLock(self.lock_path, run_id or str(uuid.uuid4()), operation)

    def lock_info(self) -> Optional[dict]:
        if not self.lock_path.exists():
            return None
        return read_lock_info(self.lock_path) or {}

    def force_unlock(self) -> bool:
        """Remove a stale lock file. Returns True if one was removed."""
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            return False
        logger.warning(f"Force-removed state lock {self.lock_path}")
        return True

    def _write(self) -> None:
        """Atomically rewrite the document (caller holds _write_lock)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.backup and not self._backed_up and self.path.exists():
            shutil.copy2(self.path, self.backup_path)
            self._backed_up = True

        self._document.serial += 1
        payload = self._document.model_dump(mode="json")

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, sort_keys=True)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StateError(f"Failed to write state file {self.path}: {e}")


def migrate_document(data: Any) -> Dict[str, Any]:
    """
    Bring a raw state document to the current format version.

    Raises:
        StateError: If the data is not a state document
        StateVersionError: If the version is newer or unknown
    """
    if not isinstance(data, dict):
        raise StateError("State document must be a JSON object")

    version = data.get("version")
    if version == STATE_FORMAT_VERSION:
        return data

    if version == 1:
        logger.info("Migrating state document from format version 1")
        records = {}
        for item in data.get("resources", []):
            kind = item.get("type")
            name = item.get("name")
            identifier = item.get("id")
            if not (kind and name and identifier):
                raise StateError(f"Version 1 state entry is incomplete: {item}")
            records[f"{kind}.{name}"] = {
                "kind": kind,
                "name": name,
                "identifier": identifier,
                "attributes": item.get("attributes", {}),
                "outputs": {"id": identifier},
                "dependencies": item.get("depends_on", []),
                "status": "ready",
            }
        migrated = {
            "version": STATE_FORMAT_VERSION,
            "serial": data.get("serial", 0),
            "records": records,
        }
        if "lineage" in data:
            migrated["lineage"] = data["lineage"]
        return migrated

    raise StateVersionError(
        f"State format version {version!r} is not supported by this engine "
        f"(supports {STATE_FORMAT_VERSION}); refusing to proceed"
    )
