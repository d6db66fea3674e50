"""Offline per-device collection store.

Each collection is one JSON array file under ``data_dir``. Writes go to a
temporary file and are moved into place with ``os.replace`` so a crash never
leaves a half-written collection behind. Durable across restarts, authoritative
only for this device, single writer.
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, List

from plantcare.constants import Timeouts
from plantcare.domain.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)

_COLLECTION_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{0,63}$")


def validate_collection_name(name: str) -> str:
    """Collection names double as file names; keep them to a safe charset."""
    if not isinstance(name, str) or not _COLLECTION_NAME.match(name):
        raise ValidationError(f"Invalid collection name: {name!r}", detail={"collection": name})
    return name


def _process_alive(pid: int) -> bool:
    if pid == os.getpid() or os.name != "posix":
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except OSError:
        # EPERM: exists but belongs to someone else
        return True
    return True


class FileLock:
    """Simple file-lock using a lockfile (cross-platform, advisory).

    Note: This is a lightweight lock suitable for single-writer or low-contention
    scenarios. It uses atomic creation of a .lock file and retries until timeout.
    The lockfile records ``"<pid> <created>"``; a lock whose owner process is
    gone, or which is older than ``stale_after`` seconds, is left over from a
    crashed writer and is broken instead of waited on.
    """

    def __init__(
        self,
        lock_path: str,
        timeout: float = Timeouts.FILE_LOCK_TIMEOUT,
        retry: float = 0.05,
        stale_after: float = Timeouts.FILE_LOCK_STALE_AFTER,
    ) -> None:
        self.lock_path = lock_path
        self.timeout = float(timeout)
        self.retry = float(retry)
        self.stale_after = float(stale_after)
        self._acquired = False

    def acquire(self) -> bool:
        start = time.time()
        while True:
            try:
                # O_EXCL ensures atomic creation; failing if exists
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self.break_if_stale(self.lock_path, self.stale_after):
                    continue
                if (time.time() - start) >= self.timeout:
                    return False
                time.sleep(self.retry)
                continue
            try:
                os.write(fd, f"{os.getpid()} {time.time():.3f}".encode("ascii"))
            finally:
                os.close(fd)
            self._acquired = True
            return True

    @staticmethod
    def is_stale(lock_path: str, stale_after: float = Timeouts.FILE_LOCK_STALE_AFTER) -> bool:
        try:
            age = time.time() - os.path.getmtime(lock_path)
            with open(lock_path, "r", encoding="ascii", errors="replace") as fh:
                owner = fh.read().split()
        except FileNotFoundError:
            return False
        if age >= stale_after:
            return True
        # An empty lockfile is one being created right now
        if not owner or not owner[0].isdigit():
            return False
        return not _process_alive(int(owner[0]))

    @classmethod
    def break_if_stale(cls, lock_path: str, stale_after: float = Timeouts.FILE_LOCK_STALE_AFTER) -> bool:
        """Remove ``lock_path`` if it is stale. Returns True when a lock was broken."""
        if not cls.is_stale(lock_path, stale_after):
            return False
        try:
            os.unlink(lock_path)
        except FileNotFoundError:
            pass
        logger.warning("Broke stale lock %s", lock_path)
        return True

    def release(self) -> None:
        try:
            if self._acquired and os.path.exists(self.lock_path):
                os.unlink(self.lock_path)
        finally:
            self._acquired = False

    def __enter__(self):
        ok = self.acquire()
        if not ok:
            raise StorageError(f"Failed to acquire file lock: {self.lock_path}", detail={"lock": self.lock_path})
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


class LocalCollectionStore:
    """Synchronous get/set over JSON files in ``data_dir``."""

    def __init__(self, data_dir: str | os.PathLike, *, lock_timeout: float = Timeouts.FILE_LOCK_TIMEOUT) -> None:
        self._data_dir = Path(data_dir)
        self._lock_timeout = lock_timeout
        self._clear_stale_locks()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _clear_stale_locks(self) -> None:
        """Drop lockfiles left behind by a writer that died holding them."""
        if not self._data_dir.is_dir():
            return
        for lock in self._data_dir.glob("*.json.lock"):
            FileLock.break_if_stale(str(lock))

    def _path(self, name: str) -> Path:
        return self._data_dir / f"{validate_collection_name(name)}.json"

    def get(self, name: str) -> List[Any]:
        """Return the stored array, or ``[]`` when the collection was never written."""
        path = self._path(name)
        if not path.exists():
            return []
        try:
            with FileLock(str(path) + ".lock", timeout=self._lock_timeout):
                with open(path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load collection %s: %s", name, e)
            raise StorageError(f"Failed to read collection {name}", detail={"collection": name}) from e
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Collection %s is not a JSON array (found %s)", name, type(data).__name__)
            raise StorageError(f"Collection {name} is corrupt", detail={"collection": name})
        return data

    def set(self, name: str, records: List[Any]) -> None:
        """Replace the collection wholesale."""
        path = self._path(name)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with FileLock(str(path) + ".lock", timeout=self._lock_timeout):
                tmp = str(path) + ".tmp"
                with open(tmp, "w", encoding="utf-8") as fh:
                    json.dump(list(records), fh)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save collection %s: %s", name, e)
            raise StorageError(f"Failed to write collection {name}", detail={"collection": name}) from e
        logger.debug("Saved collection %s (%d records)", name, len(records))

    def names(self) -> List[str]:
        """Names of collections that have been written."""
        if not self._data_dir.exists():
            return []
        return sorted(p.stem for p in self._data_dir.glob("*.json"))
