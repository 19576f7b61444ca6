"""Field-activity GPS tracking: classification, state machine, attribution."""

from agritrack.tracking.attribution import (
    estimate_field_distribution,
    finalize_activity,
)
from agritrack.tracking.classifier import (
    FixReading,
    TrackingContext,
    classify_fix,
    find_containing_field,
    find_nearest_storage,
)
from agritrack.tracking.controller import FieldActivityTracker
from agritrack.tracking.segments import (
    TrackSegment,
    TrackSegmentBuilder,
    build_track_segments,
    storage_color,
)
from agritrack.tracking.session import TrackingSession, advance_session, start_session
from agritrack.tracking.simulation import DragSimulator

__all__ = [
    "DragSimulator",
    "FieldActivityTracker",
    "FixReading",
    "TrackSegment",
    "TrackSegmentBuilder",
    "TrackingContext",
    "TrackingSession",
    "advance_session",
    "build_track_segments",
    "classify_fix",
    "estimate_field_distribution",
    "finalize_activity",
    "find_containing_field",
    "find_nearest_storage",
    "start_session",
    "storage_color",
]
