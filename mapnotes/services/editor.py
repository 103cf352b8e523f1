from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from mapnotes.client.protocols import AuthProvider, MapStoreClient
from mapnotes.config import EditorSettings
from mapnotes.domain.shapes import GeometryModel, Shape
from mapnotes.errors import MapNotesError
from mapnotes.services.drawing_service import DrawingController, ToolMode
from mapnotes.services.geojson_serializer import ImportResult, export_feature_collection
from mapnotes.services.persistence_service import (
    AutoSaver,
    OperationResult,
    PersistenceGateway,
)
from mapnotes.services.selection_service import SelectionService, WebMercatorProjection
from mapnotes.services.widget import MapWidget, NullMapWidget

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class MapEditor:
    """
    One map editing session.

    Owns the geometry model, the draft and selection state, and the
    persistence gateway, and wires them to a map widget. Widget events enter
    through ``on_click`` and ``on_drag_end``. Errors raised by drawing or
    editing actions are reported through ``notify`` instead of propagating.
    """

    def __init__(
        self,
        client: MapStoreClient,
        auth: AuthProvider,
        widget: Optional[MapWidget] = None,
        settings: Optional[EditorSettings] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.settings = settings or EditorSettings()
        self.widget = widget or NullMapWidget()
        self.model = GeometryModel()
        self.document_name: Optional[str] = None
        self._notify_callback = notify

        self.selection = SelectionService(
            self.model,
            self.widget,
            WebMercatorProjection(self.settings.zoom),
            point_tolerance_m=self.settings.point_tolerance_m,
            line_tolerance_px=self.settings.line_tolerance_px,
        )
        self.drawing = DrawingController(
            self.model,
            self.selection,
            self.widget,
            on_change=self._model_changed,
        )
        self.gateway = PersistenceGateway(
            client,
            self.model,
            auth,
            confirm=confirm,
            notify=notify,
            on_loaded=self._document_loaded,
        )
        self.autosaver: Optional[AutoSaver] = None
        if self.settings.autosave:
            self.autosaver = AutoSaver(
                self.gateway,
                lambda: self.document_name,
                interval=self.settings.autosave_interval,
            )

    @property
    def shapes(self) -> List[Shape]:
        return self.model.shapes

    def set_zoom(self, zoom: float) -> None:
        self.selection.projection.zoom = zoom

    def _notify(self, message: str) -> None:
        if self._notify_callback is not None:
            self._notify_callback(message)
        else:
            logger.info(message)

    def _model_changed(self) -> None:
        if self.autosaver is not None:
            self.autosaver.trigger()

    def _document_loaded(self, result: ImportResult) -> None:
        self.selection.deselect()
        self.widget.render(self.model.shapes)

    # ------------------------------------------------------------------
    # drawing and editing actions
    # ------------------------------------------------------------------

    def select_tool(self, tool: ToolMode) -> None:
        try:
            self.drawing.select_tool(tool)
        except MapNotesError as exc:
            self._notify(exc.user_message)

    def on_click(self, coordinate: Coordinate) -> Optional[Shape]:
        try:
            return self.drawing.handle_click(coordinate)
        except MapNotesError as exc:
            self._notify(exc.user_message)
            return None

    def on_drag_end(self, shape: Shape, coordinates: List[Coordinate]) -> None:
        try:
            self.drawing.handle_drag_end(shape, coordinates)
        except MapNotesError as exc:
            self._notify(exc.user_message)

    def finish(self) -> Optional[Shape]:
        try:
            return self.drawing.finish()
        except MapNotesError as exc:
            self._notify(exc.user_message)
            return None

    def select(self, target) -> Optional[Shape]:
        return self.selection.select(target)

    def rename(self, new_name: str) -> bool:
        try:
            self.selection.rename(new_name)
        except MapNotesError as exc:
            self._notify(exc.user_message)
            return False
        return True

    def delete_selected(self) -> Optional[Shape]:
        return self.drawing.delete_selected()

    def clear_all(self) -> None:
        self.drawing.clear_all()

    def export(self) -> dict:
        return export_feature_collection(self.model)

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------

    async def save(self, name: Optional[str] = None) -> OperationResult:
        """Save under ``name``, or under the name of the open document."""
        target = name if name is not None else self.document_name
        result = await self.gateway.save(target)
        if result.ok:
            self.document_name = (target or "").strip()
        return result

    async def load(self, name: str) -> OperationResult:
        result = await self.gateway.load(name)
        if result.ok:
            self.document_name = name.strip()
        return result

    async def delete(self, name: str) -> OperationResult:
        result = await self.gateway.delete(name)
        if result.ok and self.document_name == name.strip():
            self.document_name = None
        return result

    def detach(self) -> None:
        """Leave the map view; completions of pending requests are ignored."""
        if self.autosaver is not None:
            self.autosaver.cancel()
        self.gateway.detach()
