from pathlib import Path

import pytest

from service_finder.boundaries.datasets import DatasetSpec, load_dataset, load_datasets
from service_finder.boundaries.geometry import feature_polygons, polygon_to_geojson
from service_finder.common.errors import UnexpectedGeometryShape
from service_finder.common.fs import write_json
from service_finder.common.models import BoundaryFeature


def test_load_feature_collection_keys_features_by_code(tmp_path: Path, make_square):
    write_json(
        tmp_path / "icb.json",
        {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {"ICB23CD": "E54000001", "ICB23NM": "North"}, "geometry": make_square(0, 0)},
                {"type": "Feature", "properties": {"ICB23NM": "No code"}, "geometry": make_square(1, 0)},
                "not-a-feature",
            ],
        },
    )
    spec = DatasetSpec(name="icb", kind="feature_collection", path="icb.json", code_key="ICB23CD", name_key="ICB23NM")

    dataset = load_dataset(spec, tmp_path)

    assert dataset.available is True
    assert [(feature.code, feature.name, feature.dataset) for feature in dataset.features] == [("E54000001", "North", "icb")]


def test_missing_source_becomes_empty_unavailable_dataset(tmp_path: Path):
    spec = DatasetSpec(name="ccg", kind="feature_collection", path="absent.json", code_key="CCG21CD")

    dataset = load_dataset(spec, tmp_path)

    assert dataset.available is False
    assert dataset.features == []


def test_unreadable_source_becomes_empty_unavailable_dataset(tmp_path: Path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    spec = DatasetSpec(name="ccg", kind="feature_collection", path="broken.json", code_key="CCG21CD")

    assert load_dataset(spec, tmp_path).available is False


def test_directory_source_reads_every_file_and_skips_bad_ones(tmp_path: Path, make_square):
    areas = tmp_path / "areas"
    write_json(
        areas / "cf.json",
        {"type": "FeatureCollection", "features": [{"properties": {"name": "CF10"}, "geometry": make_square(0, 0)}]},
    )
    write_json(
        areas / "sa.geojson",
        {"type": "FeatureCollection", "features": [{"properties": {"name": "SA1"}, "geometry": make_square(1, 0)}]},
    )
    (areas / "ll.json").write_text("oops", encoding="utf-8")
    (areas / "README.txt").write_text("ignored", encoding="utf-8")
    spec = DatasetSpec(name="areas", kind="feature_collection_dir", path="areas", code_key="name")

    dataset = load_dataset(spec, tmp_path)

    assert dataset.available is True
    assert [feature.code for feature in dataset.features] == ["CF10", "SA1"]


def test_load_datasets_keeps_config_order(tmp_path: Path):
    specs = [
        DatasetSpec(name="b", kind="feature_collection", path="b.json", code_key="x"),
        DatasetSpec(name="a", kind="feature_collection", path="a.json", code_key="x"),
    ]
    assert list(load_datasets(specs, tmp_path)) == ["b", "a"]


def test_multipolygon_expands_to_one_polygon_per_part(make_square):
    geometry = {
        "type": "MultiPolygon",
        "coordinates": [make_square(0, 0)["coordinates"], make_square(5, 5)["coordinates"]],
    }
    polygons = feature_polygons(BoundaryFeature(code="E1", geometry=geometry, dataset="icb"))

    assert len(polygons) == 2
    assert [polygon.bounds for polygon in polygons] == [(0.0, 0.0, 1.0, 1.0), (5.0, 5.0, 6.0, 6.0)]


def test_polygon_holes_survive_conversion():
    geometry = {
        "type": "Polygon",
        "coordinates": [
            [[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]],
            [[1, 1], [2, 1], [2, 2], [1, 2], [1, 1]],
        ],
    }
    (polygon,) = feature_polygons(BoundaryFeature(code="E1", geometry=geometry, dataset="icb"))

    assert len(polygon.interiors) == 1
    assert polygon.area == pytest.approx(15.0)


@pytest.mark.parametrize("geometry", [{"type": "Point", "coordinates": [0, 0]}, None])
def test_non_polygon_geometry_is_rejected(geometry):
    with pytest.raises(UnexpectedGeometryShape):
        feature_polygons(BoundaryFeature(code="E1", geometry=geometry, dataset="icb"))


def test_british_national_grid_is_reprojected_to_wgs84():
    # Roughly central London in EPSG:27700.
    geometry = {
        "type": "Polygon",
        "coordinates": [[[529000, 179000], [531000, 179000], [531000, 181000], [529000, 181000], [529000, 179000]]],
    }
    (polygon,) = feature_polygons(BoundaryFeature(code="E1", geometry=geometry, dataset="ccg", epsg=27700))

    min_lon, min_lat, max_lon, max_lat = polygon.bounds
    assert -0.2 < min_lon < max_lon < 0.0
    assert 51.4 < min_lat < max_lat < 51.6


def test_polygon_to_geojson_rounds_coordinates(make_square):
    (polygon,) = feature_polygons(
        BoundaryFeature(code="E1", geometry=make_square(0.12345678, 0.0), dataset="icb")
    )
    ring = polygon_to_geojson(polygon)["coordinates"][0]
    assert ring[0] == [0.123457, 0.0]
    assert ring[0] == ring[-1]
