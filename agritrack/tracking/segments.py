"""Split a recorded track into colored segments by spreading state and source."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from agritrack.core.models import ActivityType, FertilizerType, StorageLocation, TrackPoint
from agritrack.core.storage import storages_of_type

SLURRY_PALETTE = ("#451a03", "#78350f", "#92400e", "#b45309", "#854d0e")
MANURE_PALETTE = ("#d97706", "#ea580c", "#f59e0b", "#c2410c", "#fb923c")
NO_SOURCE_COLOR = "#3b82f6"
UNKNOWN_SOURCE_COLOR = "#64748b"
TILLAGE_COLOR = "#2563eb"


@dataclass(frozen=True, slots=True)
class TrackSegment:
    """Contiguous run of track points sharing spreading state and source.

    Attributes
    ----------
    points : tuple[TrackPoint, ...]
        Segment points. Every segment after the first starts with the last
        point of its predecessor.
    is_spreading : bool
        Spreading flag shared by the run.
    storage_id : str | None
        Source storage shared by the run.
    color : str
        Hex color for rendering.
    """

    points: tuple[TrackPoint, ...]
    is_spreading: bool
    storage_id: str | None
    color: str


def storage_color(storage_id: str | None, storages: Sequence[StorageLocation]) -> str:
    """Return a stable color for a storage.

    Storages of the same type are sorted by id and indexed into the palette of
    their type, so one storage keeps its color across reloads.

    Parameters
    ----------
    storage_id : str | None
        Storage id of a track point.
    storages : Sequence[StorageLocation]
        All known storages.

    Returns
    -------
    str
        Hex color.
    """
    if storage_id is None:
        return NO_SOURCE_COLOR
    storage = next((s for s in storages if s.id == storage_id), None)
    if storage is None:
        return UNKNOWN_SOURCE_COLOR
    same_type_ids = [s.id for s in storages_of_type(storages, storage.type)]
    index = same_type_ids.index(storage_id)
    palette = SLURRY_PALETTE if storage.type == FertilizerType.SLURRY else MANURE_PALETTE
    return palette[index % len(palette)]


class TrackSegmentBuilder:
    """Incrementally group track points into segments.

    Examples
    --------
    >>> builder = TrackSegmentBuilder(storages=[])
    >>> builder.segments()
    []
    """

    def __init__(
        self,
        storages: Sequence[StorageLocation],
        activity_type: ActivityType | None = None,
    ) -> None:
        self._storages = tuple(storages)
        self._fixed_color = TILLAGE_COLOR if activity_type == ActivityType.TILLAGE else None
        self._closed: list[TrackSegment] = []
        self._current: list[TrackPoint] = []
        self._point_count = 0

    def _color_for(self, storage_id: str | None) -> str:
        if self._fixed_color is not None:
            return self._fixed_color
        return storage_color(storage_id, self._storages)

    def _seal(self, points: list[TrackPoint]) -> TrackSegment:
        head = points[-1]
        return TrackSegment(
            points=tuple(points),
            is_spreading=head.is_spreading,
            storage_id=head.storage_id,
            color=self._color_for(head.storage_id),
        )

    def push(self, point: TrackPoint) -> None:
        """Add the next track point in recording order."""
        self._point_count += 1
        if not self._current:
            self._current = [point]
            return
        last = self._current[-1]
        if point.is_spreading == last.is_spreading and point.storage_id == last.storage_id:
            self._current.append(point)
            return
        self._closed.append(self._seal(self._current))
        self._current = [last, point]

    def extend(self, points: Iterable[TrackPoint]) -> None:
        for point in points:
            self.push(point)

    def segments(self) -> list[TrackSegment]:
        """Return closed segments plus the open one; empty below two points."""
        if self._point_count < 2:
            return []
        return [*self._closed, self._seal(self._current)]


def build_track_segments(
    points: Sequence[TrackPoint],
    storages: Sequence[StorageLocation],
    activity_type: ActivityType | None = None,
) -> list[TrackSegment]:
    """Group a full track into segments.

    Parameters
    ----------
    points : Sequence[TrackPoint]
        Recorded track in order.
    storages : Sequence[StorageLocation]
        Storages used for source colors.
    activity_type : ActivityType, optional
        Tillage tracks use one fixed color.

    Returns
    -------
    list[TrackSegment]
        Segments in recording order; empty for fewer than two points.
    """
    builder = TrackSegmentBuilder(storages, activity_type)
    builder.extend(points)
    return builder.segments()
