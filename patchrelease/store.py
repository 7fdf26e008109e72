"""
Persisted maintenance state.

A store loads the whole MaintenanceState and saves it back wholesale. Every
operation receives a store explicitly; nothing reads a process-wide state.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.lib import validate
from patchrelease.models import MaintenanceState

logger = logging.getLogger(__name__)


class Store(Protocol):
    def load(self) -> MaintenanceState: ...

    def save(self, state: MaintenanceState) -> None: ...


def deserialize(data: dict) -> MaintenanceState:
    """Validate a state document and rebuild the state from it.

    Raises:
        MaintenanceError: INVALID_STATE if the document is malformed
    """
    try:
        validate.validate(data, "maintenance")
    except validate.ValidationError as e:
        raise MaintenanceError(ErrorKind.INVALID_STATE, str(e)) from e
    return MaintenanceState.from_dict(data)


class JsonFileStore:
    """State kept in a single JSON file, rewritten on every save."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> MaintenanceState:
        if not self.path.exists():
            logger.debug(f"No state file at {self.path}, starting empty")
            return MaintenanceState()
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise MaintenanceError(ErrorKind.INVALID_STATE, f"Invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED, f"Could not read {self.path}: {e}"
            ) from e
        return deserialize(data)

    def save(self, state: MaintenanceState) -> None:
        try:
            self.path.write_text(json.dumps(state.to_dict(), indent=2) + "\n")
        except OSError as e:
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED, f"Could not write {self.path}: {e}"
            ) from e
        logger.debug(f"Saved state to {self.path}")


class MemoryStore:
    """State kept in memory as the serialized document.

    Loading always deserializes a fresh copy, so callers see exactly what a
    file-backed store would give them. save_count counts saves.
    """

    def __init__(self, data: dict | None = None):
        self.data = data
        self.save_count = 0

    def load(self) -> MaintenanceState:
        if self.data is None:
            return MaintenanceState()
        return deserialize(json.loads(json.dumps(self.data)))

    def save(self, state: MaintenanceState) -> None:
        self.data = json.loads(json.dumps(state.to_dict()))
        self.save_count += 1


def reset(store: Store, keep_inventory: bool = False) -> MaintenanceState:
    """Replace the stored state with an empty one."""
    fresh = MaintenanceState()
    if keep_inventory:
        fresh.inventory = store.load().inventory
    store.save(fresh)
    logger.info("Maintenance state reset" + (" (kept branch inventory)" if keep_inventory else ""))
    return fresh
