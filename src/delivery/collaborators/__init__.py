"""Collaborator adapters — property directory, cleaning schedule, local cache."""

import os

_instances: dict = {}


def _adapter() -> str:
    return os.environ.get("COLLABORATOR_ADAPTER", "memory")


def _build(kind: str):
    adapter = _adapter()
    if adapter != "memory":
        raise ValueError(f"Unknown collaborator adapter: {adapter}")

    from delivery.collaborators.memory_adapter import (
        InMemoryCleaningSchedule,
        InMemoryLocalCache,
        InMemoryPropertyDirectory,
    )

    return {
        "properties": InMemoryPropertyDirectory,
        "cleanings": InMemoryCleaningSchedule,
        "cache": InMemoryLocalCache,
    }[kind]()


def _get(kind: str):
    if kind not in _instances:
        _instances[kind] = _build(kind)
    return _instances[kind]


def get_property_directory():
    """Return the configured property directory (singleton)."""
    return _get("properties")


def get_cleaning_schedule():
    """Return the configured cleaning schedule (singleton)."""
    return _get("cleanings")


def get_local_cache():
    """Return the configured local cache (singleton)."""
    return _get("cache")


def reset_collaborators():
    """Reset all collaborator singletons (useful for testing)."""
    _instances.clear()
