"""
GeoJSON (RFC 7946) conversion for the geometry model.

Export produces one Feature per shape with coordinates in [lng, lat] order.
Import is tolerant of legacy stored documents: the ``features`` member may be
a JSON-encoded string (possibly encoded more than once), individual
geometries or properties may be stringified, and polygon rings may be missing
their outer nesting level. Features that still cannot be read are skipped
with a warning; only an unreadable document as a whole is fatal.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from mapnotes.domain.shapes import GeometryModel, LngLat, Shape, ShapeError, ShapeKind
from mapnotes.errors import MalformedDocumentError

logger = logging.getLogger(__name__)

FEATURE_COLLECTION = "FeatureCollection"

# Legacy rows were stringified at most twice; anything deeper is garbage.
_MAX_DECODE_DEPTH = 3


class FeatureError(ValueError):
    """Raised when a single feature cannot be converted to a shape."""


@dataclass(frozen=True)
class SkippedFeature:
    index: int
    reason: str


@dataclass
class ImportResult:
    """Shapes read from a document plus the features that were skipped."""

    shapes: List[Shape] = field(default_factory=list)
    skipped: List[SkippedFeature] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.shapes)


# ============================================================================
# Export
# ============================================================================

def export_feature(shape: Shape) -> Dict[str, Any]:
    """Convert a shape to a GeoJSON Feature dict."""
    points = [[c.lng, c.lat] for c in shape.coordinates]
    if shape.kind is ShapeKind.POINT:
        coordinates: Any = points[0]
    elif shape.kind is ShapeKind.LINESTRING:
        coordinates = points
    else:
        coordinates = [points + [points[0]]]

    properties = shape.properties
    properties["name"] = shape.name
    key = shape.kind.measurement_key
    if key and key not in properties:
        shape.refresh_measurement()
        properties[key] = shape.get_property(key)

    return {
        "type": "Feature",
        "id": shape.id,
        "geometry": {
            "type": shape.kind.value,
            "coordinates": coordinates,
        },
        "properties": properties,
    }


def export_feature_collection(shapes: Iterable[Shape]) -> Dict[str, Any]:
    """Export shapes (or a GeometryModel) to a FeatureCollection dict."""
    return {
        "type": FEATURE_COLLECTION,
        "features": [export_feature(shape) for shape in shapes],
    }


# ============================================================================
# Import
# ============================================================================

def _loads_repeatedly(value: Any) -> Any:
    """Decode a value that may be JSON-encoded more than once."""
    for _ in range(_MAX_DECODE_DEPTH):
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if not isinstance(value, str):
            return value
        value = json.loads(value)
    return value


def decode_features(raw: Any) -> List[Any]:
    """
    Return the feature sequence of a document's ``features`` member.

    A JSON string is decoded before iteration. Raises MalformedDocumentError
    when the value cannot be decoded or is not a sequence.
    """
    try:
        value = _loads_repeatedly(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedDocumentError("Stored features are not valid JSON.") from exc

    if isinstance(value, dict) and value.get("type") == FEATURE_COLLECTION:
        # whole collection stored in place of its features
        return decode_features(value.get("features", []))
    if not isinstance(value, list):
        raise MalformedDocumentError(
            f"Stored features must be a list, got {type(value).__name__}."
        )
    return value


def decode_document(raw: Any) -> List[Any]:
    """
    Return the raw features of a stored document.

    Accepts a FeatureCollection dict, its JSON text, a single Feature, or a
    bare list of features as sent by older clients.
    """
    try:
        value = _loads_repeatedly(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedDocumentError("Document is not valid JSON.") from exc

    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        if "features" in value:
            return decode_features(value["features"])
        if value.get("type") == "Feature":
            return [value]
    raise MalformedDocumentError("Document is not a GeoJSON FeatureCollection.")


def _decode_member(value: Any, what: str) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise FeatureError(f"{what} is not valid JSON") from exc
    return value


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _is_position(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) in (2, 3)
        and all(_is_number(v) for v in value)
    )


def _position(value: Any) -> LngLat:
    if not _is_position(value):
        raise FeatureError(f"invalid coordinate {value!r}")
    return LngLat(float(value[0]), float(value[1]))


def _positions(value: Any) -> List[LngLat]:
    if not isinstance(value, (list, tuple)):
        raise FeatureError("coordinates must be an array")
    return [_position(v) for v in value]


def _read_coordinates(kind: ShapeKind, coordinates: Any) -> List[LngLat]:
    if kind is ShapeKind.POINT:
        return [_position(coordinates)]
    if kind is ShapeKind.LINESTRING:
        return _positions(coordinates)

    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        raise FeatureError("polygon has no rings")
    # Rings other than the first (holes) are not supported and are dropped.
    ring_source = coordinates if _is_position(coordinates[0]) else coordinates[0]
    ring = _positions(ring_source)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def _read_properties(value: Any) -> Dict[str, Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.debug("Ignoring properties that are not valid JSON")
            return {}
    if not isinstance(value, dict):
        return {}
    return dict(value)


def parse_feature(raw: Any, shape_id: Optional[str] = None) -> Shape:
    """
    Convert one GeoJSON Feature to a Shape.

    Raises FeatureError for anything that cannot be read as a point, line or
    polygon with enough coordinates.
    """
    raw = _decode_member(raw, "feature")
    if not isinstance(raw, dict):
        raise FeatureError("feature is not an object")

    geometry = _decode_member(raw.get("geometry"), "geometry")
    if not isinstance(geometry, dict):
        raise FeatureError("feature has no geometry")

    geometry_type = geometry.get("type")
    try:
        kind = ShapeKind(geometry_type)
    except ValueError:
        raise FeatureError(f"unsupported geometry type {geometry_type!r}") from None

    coordinates = _decode_member(geometry.get("coordinates"), "coordinates")
    points = _read_coordinates(kind, coordinates)
    properties = _read_properties(raw.get("properties"))

    try:
        return Shape.create(kind, points, properties, shape_id=shape_id)
    except ShapeError as exc:
        raise FeatureError(str(exc)) from exc


def parse_feature_collection(raw: Any) -> ImportResult:
    """
    Read every feature of a document.

    Raises MalformedDocumentError if the document itself is unreadable; bad
    features are skipped and reported in the result.
    """
    features = decode_document(raw)
    result = ImportResult()
    seen_ids: set[str] = set()

    for index, feature in enumerate(features):
        feature_id = feature.get("id") if isinstance(feature, dict) else None
        if not isinstance(feature_id, str) or not feature_id or feature_id in seen_ids:
            feature_id = None
        try:
            shape = parse_feature(feature, shape_id=feature_id)
        except FeatureError as exc:
            logger.warning(f"Skipping feature {index}: {exc}")
            result.skipped.append(SkippedFeature(index=index, reason=str(exc)))
            continue
        seen_ids.add(shape.id)
        result.shapes.append(shape)

    return result


def import_into(model: GeometryModel, raw: Any) -> ImportResult:
    """
    Replace the model's contents with the shapes of a document.

    The document is fully parsed before the model is cleared, so a fatal
    decode error leaves the model untouched.
    """
    result = parse_feature_collection(raw)
    model.replace(result.shapes)
    if result.skipped:
        logger.warning(
            f"Imported {result.imported} shape(s), skipped {len(result.skipped)} feature(s)"
        )
    return result
