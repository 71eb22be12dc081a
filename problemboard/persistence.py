"""Snapshot encoding and the crash-safe state file."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from .errors import CorruptDurableState, PersistenceFailure

if TYPE_CHECKING:
    from .datastore import DataStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
TABLE_NAMES = ("users", "problems", "submissions", "sessions")

Tables = Dict[str, Dict[str, Dict[str, Any]]]


def empty_tables() -> Tables:
    return {name: {} for name in TABLE_NAMES}


def encode_snapshot(tables: Tables) -> str:
    payload: Dict[str, Any] = {"version": SNAPSHOT_VERSION}
    for name in TABLE_NAMES:
        payload[name] = [[key, record] for key, record in tables.get(name, {}).items()]
    return json.dumps(payload, ensure_ascii=False, indent=2)


def decode_snapshot(text: str) -> Tables:
    """Rebuild the four tables from snapshot text.

    Documents without a ``version`` field are the legacy layout and decode the
    same way. Tables missing from the document come back empty.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptDurableState(f"State file is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise CorruptDurableState("State file must contain a JSON object")

    version = payload.get("version")
    if version is not None:
        if not isinstance(version, int) or isinstance(version, bool):
            raise CorruptDurableState(f"Invalid snapshot version: {version!r}")
        if version > SNAPSHOT_VERSION:
            raise CorruptDurableState(f"Unsupported snapshot version {version}")

    tables = empty_tables()
    for name in TABLE_NAMES:
        entries = payload.get(name)
        if entries is None:
            continue
        if not isinstance(entries, list):
            raise CorruptDurableState(f"Table '{name}' must be a list of [key, record] pairs")
        table = tables[name]
        for entry in entries:
            if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[0], str):
                raise CorruptDurableState(f"Malformed entry in table '{name}': {entry!r}")
            key, record = entry
            table[key] = record
    return tables


class SnapshotFile:
    """Owns the on-disk state file.

    A write goes to ``<path>.tmp`` first and is moved over the target with a
    single ``os.replace``, so the target always holds either the previous or
    the new complete document.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.temp_path = self.path.with_name(self.path.name + ".tmp")
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise CorruptDurableState(f"State file is not valid UTF-8: {exc}") from exc

    def write(self, text: str) -> None:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.temp_path.open("w", encoding="utf-8") as handle:
                    handle.write(text)
                    handle.flush()
                    os.fsync(handle.fileno())
                self._replace()
            except OSError as exc:
                self._discard_temp()
                raise PersistenceFailure(f"Failed to write {self.path}: {exc}", cause=exc) from exc

    def _replace(self) -> None:
        os.replace(self.temp_path, self.path)

    def _discard_temp(self) -> None:
        try:
            self.temp_path.unlink()
        except OSError:
            pass


class PersistScheduler:
    """Persists the store on a fixed interval from a background thread."""

    def __init__(self, store: "DataStore", interval: float = 30.0) -> None:
        self.store = store
        self.interval = interval
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="persist-scheduler", daemon=True)
        self._thread.start()
        logger.info("Persist scheduler started (every %ss)", self.interval)

    def stop(self, final_persist: bool = True) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None
        if final_persist:
            self.tick()
        logger.info("Persist scheduler stopped")

    def tick(self) -> bool:
        """Run one scheduled persist. Failures are logged, not raised."""
        try:
            purged = self.store.purge_expired_sessions(persist=False)
            if purged:
                logger.info("Purged %d expired sessions", purged)
            self.store.persist()
        except PersistenceFailure:
            logger.exception("Scheduled persist failed; retrying next tick")
            return False
        return True

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.tick()
