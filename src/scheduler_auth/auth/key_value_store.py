"""
Key-value stores for persisted auth state.

Provides an in-memory store for tests and embedding, and a JSON-file store
that plays the role of browser local storage for desktop and server use.
"""

import json
import logging
import os
import tempfile
from threading import RLock
from typing import Dict, List, Optional

from .capabilities import KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """Key-value store that lives only as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class LocalJsonKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON object on disk.

    Every write replaces the file atomically so a crash never leaves a
    half-written store behind.
    """

    def __init__(self, file_path: str) -> None:
        """
        Initialize the store.

        Args:
            file_path: Path of the JSON file. Parent directories are created.
        """
        self.file_path = os.path.expanduser(file_path)
        self._lock = RLock()
        self._ensure_dir_exists()
        logger.info(f"LocalJsonKeyValueStore initialized: {self.file_path}")

    def _ensure_dir_exists(self) -> None:
        target_dir = os.path.dirname(self.file_path)
        if target_dir and not os.path.exists(target_dir):
            os.makedirs(target_dir, exist_ok=True)
            logger.info(f"Created state directory: {target_dir}")

    def _read_all(self) -> Dict[str, str]:
        """Read the whole store. Caller must hold lock.

        Raises:
            ValueError: If the file exists but is not a JSON object.
        """
        if not os.path.exists(self.file_path):
            return {}

        with open(self.file_path, "r") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid store file format: {self.file_path}")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        """Persist the whole store atomically. Caller must hold lock."""
        self._ensure_dir_exists()
        target_dir = os.path.dirname(self.file_path) or "."
        fd, temp_path = tempfile.mkstemp(dir=target_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.file_path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)
            logger.debug(f"Stored key '{key}'")

    def delete(self, key: str) -> None:
        with self._lock:
            reset = False
            try:
                data = self._read_all()
            except ValueError as e:
                # An unreadable store still has to be clearable
                logger.warning(f"Resetting unreadable store {self.file_path}: {e}")
                data = {}
                reset = True
            if key in data:
                del data[key]
                self._write_all(data)
                logger.debug(f"Deleted key '{key}'")
            elif reset:
                self._write_all(data)
