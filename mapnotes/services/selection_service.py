from __future__ import annotations

import logging
import math
from typing import Optional, Tuple, Union

from mapnotes.domain.shapes import GeometryModel, LngLat, Shape, ShapeKind, haversine_distance
from mapnotes.errors import ValidationError
from mapnotes.services.widget import MapWidget, NullMapWidget

logger = logging.getLogger(__name__)

POINT_TOLERANCE_M = 20.0
LINE_TOLERANCE_PX = 10.0
DEFAULT_ZOOM = 13

Coordinate = Tuple[float, float]


class WebMercatorProjection:
    """
    Spherical Web Mercator (EPSG:3857) projection to screen pixels.

    Pixel coordinates are those of a 256px tile pyramid at the given zoom,
    matching what slippy-map widgets use for on-screen distances.
    """

    EARTH_RADIUS = 6378137.0
    MAX_LATITUDE = 85.0511287798
    TILE_SIZE = 256

    def __init__(self, zoom: float = DEFAULT_ZOOM) -> None:
        self.zoom = zoom

    def project(self, coordinate: Coordinate) -> Tuple[float, float]:
        lng, lat = coordinate
        lat = max(min(lat, self.MAX_LATITUDE), -self.MAX_LATITUDE)
        sin_lat = math.sin(math.radians(lat))
        x = self.EARTH_RADIUS * math.radians(lng)
        y = self.EARTH_RADIUS * math.log((1 + sin_lat) / (1 - sin_lat)) / 2

        scale = self.TILE_SIZE * 2 ** self.zoom
        factor = 0.5 / (math.pi * self.EARTH_RADIUS)
        return scale * (factor * x + 0.5), scale * (-factor * y + 0.5)


def _segment_distance(p: Tuple[float, float], a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Euclidean distance from p to segment ab."""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])
    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p[0] - (a[0] + t * dx), p[1] - (a[1] + t * dy))


class SelectionService:
    """
    Resolve clicks to shapes and edit the selected shape's name.

    At most one shape is selected; selecting another one reverts the
    highlight of the previous selection first.
    """

    def __init__(
        self,
        model: GeometryModel,
        widget: Optional[MapWidget] = None,
        projection: Optional[WebMercatorProjection] = None,
        point_tolerance_m: float = POINT_TOLERANCE_M,
        line_tolerance_px: float = LINE_TOLERANCE_PX,
    ) -> None:
        self._model = model
        self._widget = widget or NullMapWidget()
        self._projection = projection or WebMercatorProjection()
        self._point_tolerance_m = point_tolerance_m
        self._line_tolerance_px = line_tolerance_px
        self._selected: Optional[Shape] = None
        self._editing: Optional[Shape] = None

    @property
    def projection(self) -> WebMercatorProjection:
        return self._projection

    @property
    def selected(self) -> Optional[Shape]:
        return self._selected

    @property
    def editing(self) -> Optional[Shape]:
        """Shape whose name editor is open, if any."""
        return self._editing

    @property
    def editing_name(self) -> Optional[str]:
        return self._editing.name if self._editing else None

    def hit_test(self, coordinate: Coordinate) -> Optional[Shape]:
        """
        Return the first shape in document order that covers the coordinate.

        Points match within a distance in metres, lines within a pixel
        distance of any segment at the current zoom, polygons anywhere inside
        their bounding envelope.
        """
        click = LngLat(*coordinate)
        for shape in self._model:
            if self._matches(shape, click):
                return shape
        return None

    def _matches(self, shape: Shape, click: LngLat) -> bool:
        if shape.kind is ShapeKind.POINT:
            return haversine_distance(shape.coordinates[0], click) < self._point_tolerance_m

        if shape.kind is ShapeKind.LINESTRING:
            p = self._projection.project(click)
            projected = [self._projection.project(c) for c in shape.coordinates]
            return any(
                _segment_distance(p, projected[i], projected[i + 1]) < self._line_tolerance_px
                for i in range(len(projected) - 1)
            )

        # Envelope containment only; not an exact point-in-polygon test.
        min_lng, min_lat, max_lng, max_lat = shape.bounds
        return min_lng <= click.lng <= max_lng and min_lat <= click.lat <= max_lat

    def select(self, target: Union[Shape, Coordinate]) -> Optional[Shape]:
        """
        Select a shape directly or by hit-testing a coordinate.

        The previous selection is always reverted. Returns the newly selected
        shape, or None when nothing was hit or the shape is not in the model.
        """
        self.deselect()

        if isinstance(target, Shape):
            shape = target if target in self._model else None
        else:
            shape = self.hit_test(target)
        if shape is None:
            logger.debug("No shape found at the selected location")
            return None

        self._selected = shape
        self._editing = shape
        self._widget.highlight(shape)
        logger.debug(f"Selected {shape!r}")
        return shape

    def deselect(self) -> None:
        if self._selected is not None:
            self._widget.clear_highlight()
            self._selected = None
        self._editing = None

    def open_editor(self, shape: Shape) -> None:
        """Open the name editor for a shape without selecting it."""
        self._editing = shape

    def close_editor(self) -> None:
        self._editing = None

    def forget(self, shape: Shape) -> None:
        """Drop any reference to a shape that left the model."""
        if self._selected is shape:
            self.deselect()
        if self._editing is shape:
            self._editing = None

    def rename(self, new_name: str) -> Shape:
        """
        Commit a new name onto the shape being edited.

        Raises ValidationError for blank names; the shape is left unchanged.
        """
        shape = self._editing or self._selected
        if shape is None:
            raise ValidationError("No shape selected.")
        name = (new_name or "").strip()
        if not name:
            raise ValidationError("Name must not be empty.")
        shape.name = name
        return shape
