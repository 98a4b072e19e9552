"""JSON document store with atomic writes for crash-safe persistence.

The whole fleet lives in one JSON file. Every write rewrites the file via
a temp file in the same directory followed by a rename, so a crash never
leaves a half-written store behind.

Writers serialize on an exclusive lock file next to the store and re-read
the file before applying their change, so a sweep and a telemetry process
sharing one file do not overwrite each other's updates.
"""

import fcntl
import json
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

import structlog

from coolerwatch.exceptions import PersistenceError
from coolerwatch.storage.memory import InMemoryFleetStore

log = structlog.get_logger()

SCHEMA_VERSION = "1.0"


class JsonFleetStore(InMemoryFleetStore):
    """FleetStore persisted to a single JSON file.

    File layout::

        {
          "schema_version": "1.0",
          "coolers": {"<id>": {...}},
          "drugs": {"<id>": {...}},
          "temperature_history": [{...}],
          "alert_history": [{...}],
          "endpoints": ["https://..."]
        }
    """

    def __init__(self, path: str) -> None:
        """Initialize the store and load the file if it exists.

        Args:
            path: Path of the JSON store file

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        super().__init__()
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._in_transaction = False
        self.reload()

    def reload(self) -> None:
        """Re-read the store file, replacing in-memory state."""
        with self._lock:
            if not self.path.exists():
                log.debug("store_file_not_found", path=str(self.path))
                return

            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise PersistenceError(
                    f"Store file {self.path} is corrupted: {e}",
                    hint="Restore the file from backup or move it aside to start empty.",
                ) from e
            except OSError as e:
                raise PersistenceError(f"Cannot read store file {self.path}: {e}") from e

            if not isinstance(data, dict):
                raise PersistenceError(f"Store file {self.path} does not contain a JSON object")

            self._coolers = dict(data.get("coolers") or {})
            self._drugs = dict(data.get("drugs") or {})
            self._history = list(data.get("temperature_history") or [])
            self._alerts = list(data.get("alert_history") or [])
            self._endpoints = list(data.get("endpoints") or [])
            log.debug(
                "store_loaded",
                path=str(self.path),
                coolers=len(self._coolers),
                drugs=len(self._drugs),
            )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the file lock and work on a fresh copy of the file."""
        with self._lock:
            if self._in_transaction:
                yield
                return
            with self._file_lock():
                self._in_transaction = True
                try:
                    self.reload()
                    yield
                finally:
                    self._in_transaction = False

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a", encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot open lock file {self.lock_path}: {e}") from e

        with handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "coolers": self._coolers,
            "drugs": self._drugs,
            "temperature_history": self._history,
            "alert_history": self._alerts,
            "endpoints": self._endpoints,
        }

    def _commit(self) -> None:
        """Write the store atomically: temp file, then rename."""
        content = json.dumps(self._snapshot(), indent=2) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=".tmp-store-",
                suffix=".json",
            )
        except OSError as e:
            raise PersistenceError(f"Cannot write store file {self.path}: {e}") from e

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            shutil.move(temp_path, self.path)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            log.error("store_write_failed", path=str(self.path), error=str(e))
            raise PersistenceError(f"Cannot write store file {self.path}: {e}") from e
