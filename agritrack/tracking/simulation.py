"""Synthesize location fixes from map drag events for test mode."""

from __future__ import annotations

import math

from agritrack.core.geometry import distance_meters
from agritrack.core.models import FixSource, GeoPoint, LocationFix

SIMULATED_ACCURACY_M = 0.0


def heading_deg(start: GeoPoint, end: GeoPoint) -> float:
    """Approximate heading from ``start`` to ``end`` in degrees clockwise from north.

    Examples
    --------
    >>> heading_deg(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
    0.0
    """
    d_north = end.lat - start.lat
    d_east = (end.lng - start.lng) * math.cos(math.radians((start.lat + end.lat) / 2.0))
    return math.degrees(math.atan2(d_east, d_north)) % 360.0


class DragSimulator:
    """Turn dragged vehicle positions into throttled ``LocationFix`` objects.

    Parameters
    ----------
    min_interval_ms : int, optional
        Drag events closer in time than this to the last emitted fix are
        dropped.
    """

    def __init__(self, min_interval_ms: int = 80) -> None:
        self._min_interval_ms = min_interval_ms
        self._last_position: GeoPoint | None = None
        self._last_time_ms: int | None = None
        self._last_heading = 0.0

    def anchor(self, position: GeoPoint | None, now_ms: int | None = None) -> None:
        """Reset the reference position, e.g. when test mode is switched on."""
        self._last_position = position
        self._last_time_ms = now_ms
        self._last_heading = 0.0

    def on_drag(self, lat: float, lng: float, now_ms: int) -> LocationFix | None:
        """Convert one drag event into a fix.

        Parameters
        ----------
        lat, lng : float
            Dragged position in decimal degrees.
        now_ms : int
            Event time in epoch milliseconds.

        Returns
        -------
        LocationFix | None
            Simulated fix, or ``None`` when throttled.
        """
        position = GeoPoint(lat, lng)
        if self._last_time_ms is not None and now_ms - self._last_time_ms < self._min_interval_ms:
            return None

        speed_mps = 0.0
        heading = self._last_heading
        if self._last_position is not None and self._last_time_ms is not None:
            elapsed_s = (now_ms - self._last_time_ms) / 1000.0
            moved_m = distance_meters(self._last_position, position)
            if elapsed_s > 0:
                speed_mps = moved_m / elapsed_s
            if moved_m > 0:
                heading = heading_deg(self._last_position, position)

        self._last_position = position
        self._last_time_ms = now_ms
        self._last_heading = heading
        return LocationFix(
            lat=lat,
            lng=lng,
            accuracy_m=SIMULATED_ACCURACY_M,
            timestamp_ms=now_ms,
            speed_mps=speed_mps,
            heading_deg=heading,
            source=FixSource.SIMULATED,
        )
