from mapnotes.services.drawing_service import DrawingController, DraftState, ToolMode
from mapnotes.services.editor import MapEditor
from mapnotes.services.persistence_service import (
    AutoSaver,
    OperationResult,
    OperationStatus,
    PersistenceGateway,
)
from mapnotes.services.selection_service import SelectionService, WebMercatorProjection

__all__ = [
    "AutoSaver",
    "DraftState",
    "DrawingController",
    "MapEditor",
    "OperationResult",
    "OperationStatus",
    "PersistenceGateway",
    "SelectionService",
    "ToolMode",
    "WebMercatorProjection",
]
