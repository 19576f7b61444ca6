"""Storage fill level bookkeeping."""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Sequence

from loguru import logger

from agritrack.core.models import FertilizerType, StorageLocation


def withdraw(
    storages: Sequence[StorageLocation],
    distribution: Mapping[str, float],
) -> list[StorageLocation]:
    """Subtract withdrawn amounts from storage levels.

    Parameters
    ----------
    storages : Sequence[StorageLocation]
        Current storage snapshot.
    distribution : Mapping[str, float]
        Withdrawn amount per storage id in m³. Non-positive entries and
        unknown ids are ignored.

    Returns
    -------
    list[StorageLocation]
        Storages in input order; levels never drop below zero.
    """
    updated: list[StorageLocation] = []
    for storage in storages:
        amount = float(distribution.get(storage.id, 0.0))
        if amount <= 0:
            updated.append(storage)
            continue
        new_level = max(0.0, storage.current_level - amount)
        if amount > storage.current_level:
            logger.warning(
                f"Withdrawal of {amount:.1f} m³ exceeds level of {storage.name}, clamped to 0"
            )
        updated.append(replace(storage, current_level=new_level))
    return updated


def apply_growth(storages: Sequence[StorageLocation], hours: float) -> list[StorageLocation]:
    """Add daily growth for the elapsed hours, capped at capacity.

    Parameters
    ----------
    storages : Sequence[StorageLocation]
        Current storage snapshot.
    hours : float
        Elapsed time since the last growth update.

    Returns
    -------
    list[StorageLocation]
        Storages in input order. Full storages and storages without growth
        are returned unchanged.
    """
    if hours <= 0:
        return list(storages)
    updated: list[StorageLocation] = []
    for storage in storages:
        if storage.daily_growth <= 0 or storage.current_level >= storage.capacity:
            updated.append(storage)
            continue
        growth = storage.daily_growth / 24.0 * hours
        updated.append(replace(storage, current_level=min(storage.capacity, storage.current_level + growth)))
    return updated


def fill_percent(storage: StorageLocation) -> float:
    """Return the fill level in percent, clamped to ``[0, 100]``."""
    if storage.capacity <= 0:
        return 0.0
    return max(0.0, min(100.0, storage.current_level / storage.capacity * 100.0))


def storages_of_type(
    storages: Sequence[StorageLocation],
    fertilizer_type: FertilizerType,
) -> list[StorageLocation]:
    """Return storages of one type sorted by id."""
    return sorted((s for s in storages if s.type == fertilizer_type), key=lambda s: s.id)
