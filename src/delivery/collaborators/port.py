"""Collaborator ports — what the delivery context needs from its neighbours.

Properties, cleanings and the courier device's local cache are owned
elsewhere. The domain programs against these interfaces; adapters are
swapped via configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PropertyInfo:
    property_id: str
    name: str = ""
    address: str = ""
    access_info: str = ""


@dataclass(frozen=True)
class CleaningSlot:
    cleaning_id: str
    scheduled_time: str | None = None  # HH:MM
    status: str = "SCHEDULED"


class PropertyDirectory(ABC):
    @abstractmethod
    def lookup(self, property_id: str) -> PropertyInfo | None:
        """Return address and access details, or None for an unknown property."""
        ...


class CleaningSchedule(ABC):
    @abstractmethod
    def lookup(self, cleaning_id: str) -> CleaningSlot | None:
        """Return the cleaning's slot, or None when it is not known."""
        ...


class LocalCache(ABC):
    """Durable key/value store on the courier's device.

    Only ever used to show something while the live feed warms up. Never a
    source for settlement.
    """

    @abstractmethod
    def get(self, key: str, fallback: Any = None) -> Any: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...
