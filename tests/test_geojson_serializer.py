"""Tests for GeoJSON export and tolerant import."""
from __future__ import annotations

import json

import pytest

from mapnotes.domain.shapes import GeometryModel, LngLat, Shape, ShapeKind
from mapnotes.errors import MalformedDocumentError
from mapnotes.services.geojson_serializer import (
    FeatureError,
    decode_document,
    decode_features,
    export_feature,
    export_feature_collection,
    import_into,
    parse_feature,
    parse_feature_collection,
)


def _feature(geometry_type, coordinates, properties=None):
    return {
        "type": "Feature",
        "geometry": {"type": geometry_type, "coordinates": coordinates},
        "properties": properties if properties is not None else {},
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class TestExport:

    def test_point_feature(self):
        shape = Shape.point((13.4, 52.5), name="Office")
        feature = export_feature(shape)
        assert feature["type"] == "Feature"
        assert feature["id"] == shape.id
        assert feature["geometry"] == {"type": "Point", "coordinates": [13.4, 52.5]}
        assert feature["properties"]["name"] == "Office"

    def test_polygon_ring_is_closed(self):
        feature = export_feature(Shape.polygon([(0, 0), (1, 0), (1, 1)]))
        ring = feature["geometry"]["coordinates"][0]
        assert ring[0] == ring[-1]
        assert len(ring) == 4
        assert feature["properties"]["area"] > 0

    def test_line_has_length(self):
        feature = export_feature(Shape.line([(0, 0), (0, 1)]))
        assert feature["properties"]["length"] == pytest.approx(111195, rel=1e-4)

    def test_collection_is_json_serializable(self):
        model = GeometryModel([Shape.point((0, 0)), Shape.line([(0, 0), (1, 1)])])
        document = export_feature_collection(model)
        assert document["type"] == "FeatureCollection"
        assert len(json.loads(json.dumps(document))["features"]) == 2


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------

class TestRoundTrip:

    def test_export_then_import_preserves_shapes(self):
        shapes = [
            Shape.point((13.4, 52.5), name="Office"),
            Shape.line([(0, 0), (0, 1), (1, 1)], name="Route"),
            Shape.polygon([(0, 0), (1, 0), (1, 1), (0, 1)], name="Field"),
        ]
        model = GeometryModel()
        result = import_into(model, export_feature_collection(shapes))

        assert result.imported == 3
        assert not result.skipped
        for original, loaded in zip(shapes, model.shapes):
            assert loaded.kind is original.kind
            assert loaded.id == original.id
            assert loaded.name == original.name
            assert loaded.coordinates == original.coordinates
            if original.measurement is not None:
                assert loaded.measurement == pytest.approx(original.measurement)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

class TestParseFeature:

    def test_stringified_geometry_and_properties(self):
        raw = {
            "type": "Feature",
            "geometry": json.dumps({"type": "LineString", "coordinates": [[0, 0], [1, 1]]}),
            "properties": json.dumps({"name": "Path"}),
        }
        shape = parse_feature(raw)
        assert shape.kind is ShapeKind.LINESTRING
        assert shape.name == "Path"

    def test_stringified_coordinates(self):
        shape = parse_feature(_feature("Point", "[1.5, 2.5]"))
        assert shape.coordinates == [LngLat(1.5, 2.5)]

    def test_closing_coordinate_is_dropped(self):
        shape = parse_feature(_feature("Polygon", [[[0, 0], [1, 0], [1, 1], [0, 0]]]))
        assert shape.coordinates == [LngLat(0, 0), LngLat(1, 0), LngLat(1, 1)]

    def test_unnested_polygon_ring(self):
        shape = parse_feature(_feature("Polygon", [[0, 0], [1, 0], [1, 1]]))
        assert len(shape.coordinates) == 3

    def test_altitude_is_ignored(self):
        shape = parse_feature(_feature("Point", [1, 2, 300]))
        assert shape.coordinates == [LngLat(1, 2)]

    def test_invalid_properties_become_defaults(self):
        shape = parse_feature(_feature("Point", [1, 2], properties="{not json"))
        assert shape.name == "Marker"

    def test_stored_measurement_is_preferred(self):
        shape = parse_feature(_feature("LineString", [[0, 0], [0, 1]], {"length": 5}))
        assert shape.get_property("length") == 5

    @pytest.mark.parametrize(
        "feature",
        [
            _feature("MultiPoint", [[0, 0]]),
            _feature("LineString", [[0, 0]]),
            _feature("Polygon", [[[0, 0], [1, 1], [0, 0]]]),
            _feature("Point", [0]),
            _feature("Point", [float("nan"), 0]),
            _feature("Point", ["a", "b"]),
            {"type": "Feature", "properties": {}},
            "not json",
            42,
        ],
    )
    def test_unreadable_features(self, feature):
        with pytest.raises(FeatureError):
            parse_feature(feature)


class TestParseCollection:

    def test_partial_failure(self):
        document = {
            "type": "FeatureCollection",
            "features": [
                _feature("Point", [0, 0]),
                _feature("LineString", [[0, 0], [1, 1]]),
                _feature("LineString", [[0, 0]]),
                _feature("Polygon", [[[0, 0], [1, 0], [1, 1]]]),
            ],
        }
        result = parse_feature_collection(document)
        assert result.imported == 3
        assert [skipped.index for skipped in result.skipped] == [2]

    def test_stringified_features(self):
        features = [_feature("Point", [0, 0])]
        once = {"type": "FeatureCollection", "features": json.dumps(features)}
        twice = {"type": "FeatureCollection", "features": json.dumps(json.dumps(features))}
        assert parse_feature_collection(once).imported == 1
        assert parse_feature_collection(twice).imported == 1

    def test_document_as_json_text(self):
        text = json.dumps({"type": "FeatureCollection", "features": [_feature("Point", [0, 0])]})
        assert parse_feature_collection(text).imported == 1

    def test_duplicate_ids_get_new_ids(self):
        first = dict(_feature("Point", [0, 0]), id="same")
        second = dict(_feature("Point", [1, 1]), id="same")
        shapes = parse_feature_collection({"features": [first, second]}).shapes
        assert shapes[0].id == "same"
        assert shapes[1].id != "same"

    def test_decode_features_unwraps_collection(self):
        nested = {"type": "FeatureCollection", "features": [_feature("Point", [0, 0])]}
        assert len(decode_features(json.dumps(nested))) == 1

    def test_decode_document_accepts_bare_list(self):
        assert len(decode_document([_feature("Point", [0, 0])])) == 1

    @pytest.mark.parametrize("raw", ["{broken", '"just a string"', 7, {"type": "FeatureCollection", "features": 7}])
    def test_malformed_documents(self, raw):
        with pytest.raises(MalformedDocumentError):
            parse_feature_collection(raw)


class TestImportInto:

    def test_replaces_model(self):
        model = GeometryModel([Shape.point((5, 5))])
        import_into(model, {"features": [_feature("Point", [0, 0])]})
        assert len(model) == 1
        assert model.shapes[0].coordinates == [LngLat(0, 0)]

    def test_fatal_error_leaves_model_untouched(self):
        existing = Shape.point((5, 5))
        model = GeometryModel([existing])
        with pytest.raises(MalformedDocumentError):
            import_into(model, {"features": "{broken"})
        assert model.shapes == [existing]


class TestUnusualValues:

    def test_unknown_geometry_type_is_skipped(self):
        document = {
            "type": "FeatureCollection",
            "features": [
                _feature("Point", [0, 0]),
                _feature("LineString", [[0, 0], [1, 1]]),
                _feature("Circle", [0, 0]),
                _feature("Polygon", [[[0, 0], [1, 0], [1, 1]]]),
            ],
        }
        result = parse_feature_collection(document)
        assert result.imported == 3
        assert len(result.skipped) == 1
        assert result.skipped[0].index == 2

    def test_integer_coordinate_beyond_float_range(self):
        result = parse_feature_collection(
            {"features": [_feature("Point", [0, 0]), _feature("Point", [10 ** 400, 0])]}
        )
        assert result.imported == 1
        assert len(result.skipped) == 1

    def test_integer_measurement_beyond_float_range_is_recomputed(self):
        shape = parse_feature(_feature("LineString", [[0, 0], [0, 1]], {"length": 10 ** 400}))
        assert shape.get_property("length") == pytest.approx(111195, rel=1e-4)

    def test_numeric_name_is_kept_as_text(self):
        assert parse_feature(_feature("Point", [0, 0], {"name": 5})).name == "5"
