# AgriTrack Core Module
"""
Core domain logic for AgriTrack.

Contains:
- Data model and closed activity enums
- Geometry kernel (distance, containment, area, split)
- Field boundary editing
- Storage level bookkeeping
- Manual activity entry
"""
