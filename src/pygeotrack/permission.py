"""Local client state: the persisted permission flag and the device identity.

Both live in one small JSON file under ``TrackerConfig.state_dir``.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import time
from pathlib import Path
from typing import Any, Protocol

from pygeotrack._constants import DEVICE_ID_KEY, PERMISSION_FLAG_KEY, STATE_FILE_NAME

_logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


class PermissionStore(Protocol):
    """Remembers across sessions whether location access was granted."""

    def get(self) -> bool:
        ...

    def set(self, granted: bool) -> None:
        ...


class MemoryPermissionStore:
    def __init__(self, granted: bool = False) -> None:
        self._granted = granted

    def get(self) -> bool:
        return self._granted

    def set(self, granted: bool) -> None:
        self._granted = granted


class LocalStateFile:
    """Read-modify-write access to the JSON local state file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @classmethod
    def in_directory(cls, state_dir: str) -> LocalStateFile:
        return cls(Path(state_dir).expanduser() / STATE_FILE_NAME)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            _logger.warning("Ignoring corrupt local state file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def update(self, **values: Any) -> None:
        data = self.read()
        data.update(values)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)


class FilePermissionStore:
    """:class:`PermissionStore` persisted in the local state file."""

    def __init__(self, state: LocalStateFile) -> None:
        self._state = state

    def get(self) -> bool:
        try:
            return self._state.read().get(PERMISSION_FLAG_KEY) is True
        except OSError:
            _logger.warning("Could not read permission flag", exc_info=True)
            return False

    def set(self, granted: bool) -> None:
        try:
            self._state.update(**{PERMISSION_FLAG_KEY: bool(granted)})
        except OSError:
            _logger.warning("Could not persist permission flag", exc_info=True)


def generate_device_id(now_ms: int | None = None) -> str:
    """``device_<epoch-ms>_<9 base36 chars>``."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"device_{timestamp}_{suffix}"


def load_or_create_device_id(state: LocalStateFile) -> str:
    """Return the persisted device identity, creating it on first use.

    If the state file cannot be read or written a temporary identity is
    returned; it is not persisted and lasts for this process only.
    """
    try:
        stored = state.read().get(DEVICE_ID_KEY)
        if isinstance(stored, str) and stored:
            _logger.debug("Using existing device ID: %s", stored)
            return stored
        device_id = generate_device_id()
        state.update(**{DEVICE_ID_KEY: device_id})
    except OSError:
        _logger.error("Could not manage device ID in %s", state.path, exc_info=True)
        return f"temp_{int(time.time() * 1000)}"
    _logger.info("Created and stored new device ID: %s", device_id)
    return device_id
