"""In-memory collaborator adapters for development and tests."""

import copy
from typing import Any

from delivery.collaborators.port import (
    CleaningSchedule,
    CleaningSlot,
    LocalCache,
    PropertyDirectory,
    PropertyInfo,
)


class InMemoryPropertyDirectory(PropertyDirectory):
    def __init__(self):
        self._properties: dict[str, PropertyInfo] = {}

    def register(self, info: PropertyInfo) -> None:
        self._properties[str(info.property_id)] = info

    def lookup(self, property_id: str) -> PropertyInfo | None:
        return self._properties.get(str(property_id))


class InMemoryCleaningSchedule(CleaningSchedule):
    def __init__(self):
        self._slots: dict[str, CleaningSlot] = {}

    def register(self, slot: CleaningSlot) -> None:
        self._slots[str(slot.cleaning_id)] = slot

    def lookup(self, cleaning_id: str) -> CleaningSlot | None:
        return self._slots.get(str(cleaning_id))


class InMemoryLocalCache(LocalCache):
    """Stores deep copies so callers cannot mutate cached snapshots."""

    def __init__(self):
        self._store: dict[str, Any] = {}

    def get(self, key: str, fallback: Any = None) -> Any:
        if key not in self._store:
            return fallback
        return copy.deepcopy(self._store[key])

    def set(self, key: str, value: Any) -> None:
        self._store[key] = copy.deepcopy(value)
