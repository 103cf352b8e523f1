from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from mapnotes.domain.shapes import GeometryModel, LngLat, Shape, ShapeKind
from mapnotes.services.selection_service import SelectionService
from mapnotes.services.widget import MapWidget, NullMapWidget

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class ToolMode(str, Enum):
    NONE = "none"
    MARKER = "marker"
    LINE = "line"
    POLYGON = "polygon"
    DELETE = "delete"


_DRAFT_KINDS = {
    ToolMode.LINE: ShapeKind.LINESTRING,
    ToolMode.POLYGON: ShapeKind.POLYGON,
}


@dataclass
class DraftState:
    """Ephemeral drawing state; never persisted."""

    tool: ToolMode = ToolMode.NONE
    points: List[LngLat] = field(default_factory=list)

    @property
    def draft_kind(self) -> Optional[ShapeKind]:
        return _DRAFT_KINDS.get(self.tool)

    @property
    def preview(self) -> Optional[List[LngLat]]:
        """Points of the dashed preview overlay, once enough are collected."""
        kind = self.draft_kind
        if kind is None or len(self.points) < kind.min_points:
            return None
        return list(self.points)

    def reset(self) -> None:
        self.points = []


class DrawingController:
    """
    Turn map clicks under the current tool into geometry model changes.

    Shapes are only committed here; persistence is left to the caller. The
    ``on_change`` hook is called after every model mutation.
    """

    def __init__(
        self,
        model: GeometryModel,
        selection: SelectionService,
        widget: Optional[MapWidget] = None,
        draft: Optional[DraftState] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._model = model
        self._selection = selection
        self._widget = widget or NullMapWidget()
        self._draft = draft or DraftState()
        self._on_change = on_change

    @property
    def draft(self) -> DraftState:
        return self._draft

    @property
    def tool(self) -> ToolMode:
        return self._draft.tool

    @property
    def preview(self) -> Optional[List[LngLat]]:
        return self._draft.preview

    def select_tool(self, tool: ToolMode) -> Optional[Shape]:
        """Switch tools, committing any line or polygon in progress first."""
        committed = self.finish()
        self._draft.tool = ToolMode(tool)
        return committed

    def handle_click(self, coordinate: Coordinate) -> Optional[Shape]:
        """
        Apply a map click under the current tool.

        Returns the shape created (marker) or removed (delete), if any.
        """
        point = LngLat(*coordinate)
        tool = self._draft.tool

        if tool is ToolMode.MARKER:
            shape = Shape.create(ShapeKind.POINT, [point])
            self._commit(shape)
            return shape

        if tool in _DRAFT_KINDS:
            self._draft.points.append(point)
            return None

        if tool is ToolMode.DELETE:
            shape = self._selection.hit_test(point)
            if shape is not None:
                self.remove(shape)
            return shape

        return None

    def finish(self) -> Optional[Shape]:
        """
        Commit the line or polygon in progress if it has enough points.

        Too-short drafts are discarded silently. The draft and its preview are
        reset either way.
        """
        kind = self._draft.draft_kind
        points = list(self._draft.points)
        self._draft.reset()

        if kind is None or not points:
            return None
        if len(points) < kind.min_points:
            logger.debug(f"Discarding {kind.value} draft with {len(points)} point(s)")
            return None

        shape = Shape.create(kind, points)
        self._commit(shape)
        return shape

    def remove(self, shape: Shape) -> bool:
        removed = self._model.remove_shape(shape)
        if removed:
            self._selection.forget(shape)
            self._changed()
        return removed

    def delete_selected(self) -> Optional[Shape]:
        self.finish()
        shape = self._selection.selected
        if shape is not None:
            self.remove(shape)
        return shape

    def clear_all(self) -> None:
        """Remove every shape and reset the draft and the tool."""
        self._draft.reset()
        self._draft.tool = ToolMode.NONE
        self._selection.deselect()
        self._model.clear()
        self._changed()

    def handle_drag_end(self, shape: Shape, coordinates: List[Coordinate]) -> None:
        """Move a shape to its dragged position and refresh its measurement."""
        if shape not in self._model:
            return
        shape.move_to(coordinates)
        self._changed()

    def _commit(self, shape: Shape) -> None:
        self._model.add_shape(shape)
        self._selection.open_editor(shape)
        logger.debug(f"Committed {shape!r}")
        self._changed()

    def _changed(self) -> None:
        self._widget.render(self._model.shapes)
        if self._on_change is not None:
            self._on_change()
