"""Tabular and GIS helpers for track export and field import."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely.geometry import LineString, MultiPolygon, Point, Polygon

from agritrack.core.fields import make_field, new_field_id
from agritrack.core.geometry import offset_ring
from agritrack.core.models import Field, FieldType, GeoPoint, TrackPoint
from agritrack.tracking.segments import TrackSegment

WGS84 = "EPSG:4326"
TRACK_COLUMNS = ["lat", "lng", "timestamp", "speed", "is_spreading", "storage_id", "load_index"]
DEFAULT_COLUMN_CANDIDATES: dict[str, tuple[str, ...]] = {
    "name": ("FSNAME", "NAME", "BEZEICHNUNG"),
    "type": ("FNAR_CODE", "FNAR", "ART", "TYPE"),
    "usage": ("SNAR", "NUTZUNG", "USAGE"),
    "codes": ("CODES", "CODE", "BEMERKUNG"),
}
VALID_LAYER_DRIVERS = {".geojson": "GeoJSON", ".json": "GeoJSON", ".shp": "ESRI Shapefile", ".gpkg": "GPKG"}


def track_points_to_dataframe(points: Sequence[TrackPoint]) -> pd.DataFrame:
    """Convert track points to a flat table.

    Parameters
    ----------
    points : Sequence[TrackPoint]
        Recorded track in order.

    Returns
    -------
    pandas.DataFrame
        One row per point with columns ``TRACK_COLUMNS`` and an extra
        ``time`` column holding UTC timestamps.
    """
    records = [
        {
            "lat": p.lat,
            "lng": p.lng,
            "timestamp": p.timestamp,
            "speed": p.speed,
            "is_spreading": p.is_spreading,
            "storage_id": p.storage_id,
            "load_index": p.load_index,
        }
        for p in points
    ]
    df = pd.DataFrame.from_records(records, columns=TRACK_COLUMNS)
    df["time"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    return df


def track_points_to_gdf(points: Sequence[TrackPoint]) -> gpd.GeoDataFrame:
    """Convert track points to a WGS84 point layer.

    The ``time`` column is dropped; ``timestamp`` keeps the epoch
    milliseconds for file formats without a datetime type.
    """
    df = track_points_to_dataframe(points).drop(columns="time")
    geometry = [Point(lng, lat) for lat, lng in zip(df["lat"], df["lng"])]
    return gpd.GeoDataFrame(df, geometry=geometry, crs=WGS84)


def segments_to_gdf(segments: Sequence[TrackSegment]) -> gpd.GeoDataFrame:
    """Convert track segments to a WGS84 line layer.

    Segments with fewer than two points cannot form a line and are skipped.

    Parameters
    ----------
    segments : Sequence[TrackSegment]
        Output of :func:`agritrack.tracking.segments.build_track_segments`.

    Returns
    -------
    geopandas.GeoDataFrame
        Columns ``segment``, ``is_spreading``, ``storage_id``, ``color``,
        ``n_points`` and a ``LineString`` geometry.
    """
    rows: list[dict[str, Any]] = []
    lines: list[LineString] = []
    for index, segment in enumerate(segments):
        if len(segment.points) < 2:
            continue
        rows.append(
            {
                "segment": index,
                "is_spreading": segment.is_spreading,
                "storage_id": segment.storage_id,
                "color": segment.color,
                "n_points": len(segment.points),
            }
        )
        lines.append(LineString([(p.lng, p.lat) for p in segment.points]))
    columns = ["segment", "is_spreading", "storage_id", "color", "n_points"]
    return gpd.GeoDataFrame(pd.DataFrame(rows, columns=columns), geometry=lines, crs=WGS84)


def _ring_to_polygon(ring: Sequence[GeoPoint]) -> Polygon:
    return Polygon([(p.lng, p.lat) for p in ring])


def fields_to_gdf(fields: Sequence[Field]) -> gpd.GeoDataFrame:
    """Convert fields to a WGS84 polygon layer."""
    rows = [
        {
            "id": f.id,
            "name": f.name,
            "area_ha": f.area_ha,
            "type": f.type.value,
            "usage": f.usage,
            "codes": f.codes,
        }
        for f in fields
    ]
    columns = ["id", "name", "area_ha", "type", "usage", "codes"]
    geometry = [_ring_to_polygon(f.boundary) for f in fields]
    return gpd.GeoDataFrame(pd.DataFrame(rows, columns=columns), geometry=geometry, crs=WGS84)


def _resolve_driver(path_obj: Path) -> str:
    """Map output suffix to an OGR driver name.

    Raises
    ------
    ValueError
        Raised when the suffix is not supported.
    """
    driver = VALID_LAYER_DRIVERS.get(path_obj.suffix.lower())
    if driver is None:
        raise ValueError(f"Unsupported output format: {path_obj.suffix}")
    return driver


def save_layer(gdf: gpd.GeoDataFrame, output_path: str | Path) -> Path:
    """Write a layer to GeoJSON, GeoPackage or shapefile by suffix.

    Parameters
    ----------
    gdf : geopandas.GeoDataFrame
        Layer to write.
    output_path : str | Path
        Destination path; its suffix selects the format.

    Returns
    -------
    pathlib.Path
        Written path.
    """
    path_obj = Path(output_path)
    driver = _resolve_driver(path_obj)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    gdf.to_file(path_obj, driver=driver)
    logger.info(f"Saved {len(gdf)} feature(s) to {path_obj}")
    return path_obj


def guess_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    """Find the first column matching one of ``candidates``.

    Exact case-insensitive matches win over substring matches.

    Examples
    --------
    >>> guess_column(["id", "FSNAME_1"], ["FSNAME", "NAME"])
    'FSNAME_1'
    """
    column_list = [str(c) for c in columns]
    upper_map = {c.upper(): c for c in column_list}
    for candidate in candidates:
        exact = upper_map.get(candidate.upper())
        if exact is not None:
            return exact
    for candidate in candidates:
        partial = next((c for c in column_list if candidate.upper() in c.upper()), None)
        if partial is not None:
            return partial
    return None


def _largest_polygon(geom: Polygon | MultiPolygon) -> Polygon:
    if isinstance(geom, MultiPolygon):
        return max(geom.geoms, key=lambda part: part.area)
    return geom


def _parse_field_type(raw: Any) -> FieldType:
    text = "" if raw is None or pd.isna(raw) else str(raw).strip()
    if text.upper() == "AL" or "acker" in text.lower():
        return FieldType.ARABLE
    return FieldType.GRASSLAND


def _cell_text(row: pd.Series, column: str | None) -> str:
    if column is None or column not in row.index:
        return ""
    value = row[column]
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _validate_field_layer(gdf: gpd.GeoDataFrame) -> None:
    if gdf.empty:
        raise ValueError("field layer is empty")
    if gdf.crs is None:
        raise ValueError("field layer CRS is missing")
    geom_types = set(gdf.geometry.geom_type.dropna().unique().tolist())
    if not geom_types.issubset({"Polygon", "MultiPolygon"}):
        raise ValueError("field geometry must be Polygon or MultiPolygon")


def fields_from_gdf(
    gdf: gpd.GeoDataFrame,
    column_map: Mapping[str, str] | None = None,
    offset_north_m: float = 0.0,
    offset_east_m: float = 0.0,
) -> list[Field]:
    """Build fields from a polygon layer.

    Parameters
    ----------
    gdf : geopandas.GeoDataFrame
        Polygon layer in any CRS; reprojected to WGS84.
    column_map : Mapping[str, str], optional
        Attribute column per key ``name``, ``type``, ``usage`` and ``codes``.
        Missing keys are guessed from ``DEFAULT_COLUMN_CANDIDATES``.
    offset_north_m, offset_east_m : float, optional
        Metric shift applied to every boundary to correct datum offsets.

    Returns
    -------
    list[Field]
        One field per usable feature. Areas are recomputed from the
        shifted boundary. Multi-part features keep their largest part.

    Raises
    ------
    ValueError
        Raised when the layer is empty, has no CRS or holds non-polygons.
    """
    _validate_field_layer(gdf)
    wgs84_gdf = gdf.to_crs(WGS84)
    mapping = dict(column_map or {})
    attribute_columns = [c for c in wgs84_gdf.columns if c != wgs84_gdf.geometry.name]
    for key, candidates in DEFAULT_COLUMN_CANDIDATES.items():
        if key not in mapping:
            guessed = guess_column(attribute_columns, candidates)
            if guessed is not None:
                mapping[key] = guessed
    logger.debug(f"Field import column mapping: {mapping}")

    fields: list[Field] = []
    for index, (_, row) in enumerate(wgs84_gdf.iterrows()):
        geom = row.geometry
        if geom is None or geom.is_empty:
            logger.warning(f"Skipping feature {index}: empty geometry")
            continue
        polygon = _largest_polygon(geom)
        ring = [GeoPoint(lat=float(y), lng=float(x)) for x, y in list(polygon.exterior.coords)[:-1]]
        if len(ring) < 3:
            logger.warning(f"Skipping feature {index}: fewer than 3 vertices")
            continue
        if offset_north_m or offset_east_m:
            ring = offset_ring(ring, offset_north_m, offset_east_m)
        name = _cell_text(row, mapping.get("name")) or f"Feld {index + 1}"
        raw_type = row[mapping["type"]] if mapping.get("type") in row.index else None
        codes = _cell_text(row, mapping.get("codes")) or None
        fields.append(
            make_field(
                new_field_id(),
                name,
                ring,
                field_type=_parse_field_type(raw_type),
                usage=_cell_text(row, mapping.get("usage")),
                codes=codes,
            )
        )
    logger.info(f"Imported {len(fields)} field(s) from {len(gdf)} feature(s)")
    return fields


def load_fields_from_file(
    path: str | Path,
    column_map: Mapping[str, str] | None = None,
    offset_north_m: float = 0.0,
    offset_east_m: float = 0.0,
) -> list[Field]:
    """Read a shapefile, GeoPackage or GeoJSON and build fields from it.

    See :func:`fields_from_gdf` for the parameters.
    """
    gdf = gpd.read_file(Path(path))
    return fields_from_gdf(gdf, column_map, offset_north_m, offset_east_m)


def export_activity_track(
    points: Sequence[TrackPoint],
    segments: Sequence[TrackSegment],
    output_dir: str | Path,
    stem: str = "track",
) -> dict[str, Path]:
    """Write the point and segment layers of one recording as GeoJSON.

    Returns
    -------
    dict[str, pathlib.Path]
        Written paths keyed by ``points`` and ``segments``.
    """
    out_dir = Path(output_dir)
    return {
        "points": save_layer(track_points_to_gdf(points), out_dir / f"{stem}_points.geojson"),
        "segments": save_layer(segments_to_gdf(segments), out_dir / f"{stem}_segments.geojson"),
    }
