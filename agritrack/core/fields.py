"""Field boundary editing with area recomputation."""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Callable, Sequence

from agritrack.core.geometry import polygon_area_ha, split_polygon
from agritrack.core.models import Field, FieldType, GeoPoint


def new_field_id() -> str:
    """Generate a fresh field identifier."""
    return uuid.uuid4().hex[:12]


def make_field(
    field_id: str,
    name: str,
    boundary: Sequence[GeoPoint],
    field_type: FieldType = FieldType.GRASSLAND,
    usage: str = "",
    color: str | None = None,
    codes: str | None = None,
) -> Field:
    """Build a field whose area is computed from its boundary.

    Parameters
    ----------
    field_id : str
        Unique field id.
    name : str
        Display name.
    boundary : Sequence[GeoPoint]
        Boundary ring, at least three vertices.
    field_type : FieldType, optional
        Arable land or grassland.
    usage, color, codes : optional
        Descriptive attributes passed through unchanged.

    Returns
    -------
    Field
        New field with ``area_ha`` derived from ``boundary``.

    Raises
    ------
    ValueError
        Raised when the boundary has fewer than three vertices.
    """
    if len(boundary) < 3:
        raise ValueError("field boundary needs at least 3 points")
    ring = tuple(boundary)
    return Field(
        id=field_id,
        name=name,
        area_ha=polygon_area_ha(ring),
        type=field_type,
        boundary=ring,
        usage=usage,
        color=color,
        codes=codes,
    )


def with_boundary(field: Field, boundary: Sequence[GeoPoint]) -> Field:
    """Return a copy of ``field`` with a new boundary and recomputed area."""
    ring = tuple(boundary)
    return replace(field, boundary=ring, area_ha=polygon_area_ha(ring))


def move_vertex(field: Field, index: int, point: GeoPoint) -> Field:
    """Move one boundary vertex."""
    ring = list(field.boundary)
    ring[index] = point
    return with_boundary(field, ring)


def insert_vertex(field: Field, point: GeoPoint, index: int | None = None) -> Field:
    """Insert a boundary vertex, appended at the end when ``index`` is None."""
    ring = list(field.boundary)
    if index is None:
        ring.append(point)
    else:
        ring.insert(index, point)
    return with_boundary(field, ring)


def delete_vertex(field: Field, index: int) -> Field:
    """Remove one boundary vertex.

    The resulting field may have fewer than three vertices, in which case its
    area is ``0.0`` and it no longer contains any point.
    """
    ring = [p for i, p in enumerate(field.boundary) if i != index]
    return with_boundary(field, ring)


def split_field(
    field: Field,
    cutter_points: Sequence[GeoPoint],
    id_factory: Callable[[], str] = new_field_id,
) -> tuple[Field, Field] | None:
    """Split a field into two parts along a cut line.

    Parameters
    ----------
    field : Field
        Field to split.
    cutter_points : Sequence[GeoPoint]
        Drawn cut line; only its first and last point are used.
    id_factory : Callable[[], str], optional
        Generates ids for the two new fields.

    Returns
    -------
    tuple[Field, Field] | None
        Two new fields named ``"<name> (Teil 1)"`` and ``"<name> (Teil 2)"``,
        or ``None`` when the cut is degenerate. The caller keeps the
        original field unchanged in that case.
    """
    result = split_polygon(field.boundary, cutter_points)
    if result is None:
        return None
    first_ring, second_ring = result
    first = with_boundary(replace(field, id=id_factory(), name=f"{field.name} (Teil 1)"), first_ring)
    second = with_boundary(replace(field, id=id_factory(), name=f"{field.name} (Teil 2)"), second_ring)
    return first, second
