"""
Domain models for drawn map shapes.

This module provides the tagged shape type (point, line, polygon), the
measurement helpers used for derived properties, and the in-memory geometry
model that holds the shapes of the document currently open.
"""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from mapnotes.errors import ValidationError

EARTH_RADIUS_M = 6371000.0


class ShapeError(ValidationError):
    """Raised when a shape cannot be built from the given coordinates."""


class LngLat(NamedTuple):
    """Geographic coordinate in (longitude, latitude) order, degrees."""

    lng: float
    lat: float


class ShapeKind(str, Enum):
    """Geometry variant of a shape, named after the GeoJSON geometry type."""

    POINT = "Point"
    LINESTRING = "LineString"
    POLYGON = "Polygon"

    @property
    def min_points(self) -> int:
        return _MIN_POINTS[self]

    @property
    def default_name(self) -> str:
        return _DEFAULT_NAMES[self]

    @property
    def measurement_key(self) -> Optional[str]:
        """Name of the derived numeric property, if the kind has one."""
        return _MEASUREMENT_KEYS[self]


_MIN_POINTS = {
    ShapeKind.POINT: 1,
    ShapeKind.LINESTRING: 2,
    ShapeKind.POLYGON: 3,
}

_DEFAULT_NAMES = {
    ShapeKind.POINT: "Marker",
    ShapeKind.LINESTRING: "Line",
    ShapeKind.POLYGON: "Polygon",
}

_MEASUREMENT_KEYS = {
    ShapeKind.POINT: None,
    ShapeKind.LINESTRING: "length",
    ShapeKind.POLYGON: "area",
}


# ============================================================================
# Measurement helpers
# ============================================================================

def haversine_distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Great-circle distance in metres between two (lng, lat) coordinates."""
    lng1, lat1 = a
    lng2, lat2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    sin_dlat = math.sin(math.radians(lat2 - lat1) / 2)
    sin_dlng = math.sin(math.radians(lng2 - lng1) / 2)
    h = sin_dlat * sin_dlat + math.cos(phi1) * math.cos(phi2) * sin_dlng * sin_dlng
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def compute_length(points: Sequence[Tuple[float, float]]) -> float:
    """
    Length of a polyline in metres.

    Sum of haversine distances between consecutive coordinates; 0 for fewer
    than two points.
    """
    if len(points) < 2:
        return 0.0
    return sum(haversine_distance(points[i], points[i + 1]) for i in range(len(points) - 1))


def compute_area(ring: Sequence[Tuple[float, float]]) -> float:
    """
    Approximate area of a polygon ring in square metres.

    Uses the spherical excess summation over ring edges:
    sum of dLng * (2 + sin(lat1) + sin(lat2)), scaled by R^2 / 2. The ring is
    treated as implicitly closed. Returns 0 for fewer than three points.
    """
    if len(ring) < 3:
        return 0.0

    total = 0.0
    previous = ring[-1]
    for current in ring:
        lat_prev = math.radians(previous[1])
        lat_cur = math.radians(current[1])
        d_lng = math.radians(previous[0] - current[0])
        total += d_lng * (2 + math.sin(lat_prev) + math.sin(lat_cur))
        previous = current

    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def _is_measurement(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


# ============================================================================
# Shape
# ============================================================================

class Shape:
    """
    One drawn geometric object plus its property mapping.

    The kind is fixed at creation. Coordinates are stored as ``LngLat``
    tuples; polygons hold their first (outer) ring only, without a closing
    duplicate of the first coordinate.
    """

    def __init__(
        self,
        kind: ShapeKind,
        coordinates: Iterable[Tuple[float, float]],
        properties: Optional[Dict[str, Any]] = None,
        shape_id: Optional[str] = None,
    ) -> None:
        self.__kind = ShapeKind(kind)
        self.__coordinates = self._normalize(self.__kind, coordinates)
        self.__properties: Dict[str, Any] = dict(properties or {})
        self.__id = shape_id or uuid.uuid4().hex

    @classmethod
    def create(
        cls,
        kind: ShapeKind,
        coordinates: Iterable[Tuple[float, float]],
        properties: Optional[Dict[str, Any]] = None,
        shape_id: Optional[str] = None,
    ) -> "Shape":
        """
        Build a shape with its default name and derived measurement filled in.

        A numeric measurement already present in ``properties`` is kept as is,
        so values shown before a save stay stable after a load.
        """
        shape = cls(kind, coordinates, properties, shape_id=shape_id)
        name = shape.get_property("name")
        if isinstance(name, (int, float)) and not isinstance(name, bool):
            name = str(name)
            shape.set_property("name", name)
        if not isinstance(name, str) or not name.strip():
            shape.set_property("name", shape.kind.default_name)
        key = shape.kind.measurement_key
        if key and not _is_measurement(shape.get_property(key)):
            shape.refresh_measurement()
        return shape

    @classmethod
    def point(cls, coordinate: Tuple[float, float], name: Optional[str] = None) -> "Shape":
        return cls.create(ShapeKind.POINT, [coordinate], {"name": name} if name else None)

    @classmethod
    def line(cls, points: Iterable[Tuple[float, float]], name: Optional[str] = None) -> "Shape":
        return cls.create(ShapeKind.LINESTRING, points, {"name": name} if name else None)

    @classmethod
    def polygon(cls, ring: Iterable[Tuple[float, float]], name: Optional[str] = None) -> "Shape":
        return cls.create(ShapeKind.POLYGON, ring, {"name": name} if name else None)

    @staticmethod
    def _normalize(kind: ShapeKind, coordinates: Iterable[Tuple[float, float]]) -> List[LngLat]:
        points = [LngLat(float(lng), float(lat)) for lng, lat in coordinates]
        if len(points) < kind.min_points:
            raise ShapeError(
                f"{kind.value} requires at least {kind.min_points} point(s), got {len(points)}"
            )
        if kind is ShapeKind.POINT and len(points) != 1:
            raise ShapeError(f"Point takes exactly one coordinate, got {len(points)}")
        return points

    @property
    def id(self) -> str:
        return self.__id

    @property
    def kind(self) -> ShapeKind:
        return self.__kind

    @property
    def coordinates(self) -> List[LngLat]:
        """Coordinates of the shape (copy)."""
        return list(self.__coordinates)

    @property
    def properties(self) -> Dict[str, Any]:
        """Property mapping (copy)."""
        return self.__properties.copy()

    def get_property(self, key: str, default: Any = None) -> Any:
        return self.__properties.get(key, default)

    def set_property(self, key: str, value: Any) -> None:
        self.__properties[key] = value

    @property
    def name(self) -> str:
        return str(self.__properties.get("name", self.__kind.default_name))

    @name.setter
    def name(self, value: str) -> None:
        self.__properties["name"] = str(value)

    @property
    def measurement(self) -> Optional[float]:
        """Derived length (lines) or area (polygons); None for points."""
        key = self.__kind.measurement_key
        if key is None:
            return None
        return self.__properties.get(key)

    def refresh_measurement(self) -> None:
        """Recompute the derived measurement from the current geometry."""
        if self.__kind is ShapeKind.LINESTRING:
            self.__properties["length"] = compute_length(self.__coordinates)
        elif self.__kind is ShapeKind.POLYGON:
            self.__properties["area"] = compute_area(self.__coordinates)

    def move_to(self, coordinates: Iterable[Tuple[float, float]]) -> None:
        """Replace the geometry (e.g. after a drag) and recompute measurements."""
        self.__coordinates = self._normalize(self.__kind, coordinates)
        self.refresh_measurement()

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Bounding envelope as (min_lng, min_lat, max_lng, max_lat)."""
        lngs = [c.lng for c in self.__coordinates]
        lats = [c.lat for c in self.__coordinates]
        return min(lngs), min(lats), max(lngs), max(lats)

    def __repr__(self) -> str:
        return f"Shape({self.__kind.value}, name={self.name!r}, points={len(self.__coordinates)})"


# ============================================================================
# Geometry model
# ============================================================================

class GeometryModel:
    """Ordered collection of the shapes of the document currently open."""

    def __init__(self, shapes: Optional[Iterable[Shape]] = None) -> None:
        self.__shapes: List[Shape] = list(shapes or [])

    @property
    def shapes(self) -> List[Shape]:
        """Shapes in document order (read-only copy)."""
        return self.__shapes.copy()

    def add_shape(self, shape: Shape) -> None:
        if not isinstance(shape, Shape):
            raise TypeError("shape must be an instance of Shape")
        self.__shapes.append(shape)

    def remove_shape(self, shape: Shape) -> bool:
        """Remove a shape by identity. Returns True if removed."""
        for i, existing in enumerate(self.__shapes):
            if existing is shape:
                self.__shapes.pop(i)
                return True
        return False

    def clear(self) -> None:
        self.__shapes.clear()

    def replace(self, shapes: Iterable[Shape]) -> None:
        """Clear the model and add the given shapes in order."""
        new_shapes = list(shapes)
        self.clear()
        for shape in new_shapes:
            self.add_shape(shape)

    def find(self, shape_id: str) -> Optional[Shape]:
        for shape in self.__shapes:
            if shape.id == shape_id:
                return shape
        return None

    def __contains__(self, shape: object) -> bool:
        return any(existing is shape for existing in self.__shapes)

    def __iter__(self) -> Iterator[Shape]:
        return iter(self.__shapes.copy())

    def __len__(self) -> int:
        return len(self.__shapes)
