"""
Domain models package.

This package contains the shape model and document records.
"""

from mapnotes.domain.documents import DocumentSummary, Identity, StoredDocument
from mapnotes.domain.shapes import (
    EARTH_RADIUS_M,
    GeometryModel,
    LngLat,
    Shape,
    ShapeError,
    ShapeKind,
    compute_area,
    compute_length,
    haversine_distance,
)

__all__ = [
    'DocumentSummary',
    'Identity',
    'StoredDocument',
    'EARTH_RADIUS_M',
    'GeometryModel',
    'LngLat',
    'Shape',
    'ShapeError',
    'ShapeKind',
    'compute_area',
    'compute_length',
    'haversine_distance',
]
