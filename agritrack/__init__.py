# AgriTrack - Source Package
"""
AgriTrack: field-activity tracking core for farm record keeping.

This package provides:
- Geometry helpers for field polygons (area, containment, splitting)
- GPS tracking state machine for fertilization and tillage work
- Track segmentation and per-field / per-storage amount attribution
- Drag-based GPS simulation for test mode
- Tabular and GIS export of recorded tracks
"""

__version__ = "0.1.0"
