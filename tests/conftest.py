from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from service_finder.common.fs import write_json
from service_finder.lookup.index import IndexCache


def square(min_lon: float, min_lat: float, size: float = 1.0) -> dict:
    max_lon = min_lon + size
    max_lat = min_lat + size
    return {
        "type": "Polygon",
        "coordinates": [
            [[min_lon, min_lat], [max_lon, min_lat], [max_lon, max_lat], [min_lon, max_lat], [min_lon, min_lat]]
        ],
    }


def feature_collection(code_key: str, entries: list[tuple[str, dict]]) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {code_key: code}, "geometry": geometry} for code, geometry in entries
        ],
    }


BOUNDARY_SOURCES_YML = """version: "test"
boundaries_dir: boundaries
datasets:
  - name: icb
    kind: feature_collection
    path: icb.json
    code_key: ICB23CD
  - name: ccg
    kind: feature_collection
    path: ccg.json
    code_key: CCG21CD
  - name: wales_health_boards
    kind: feature_collection
    path: lhb.json
    code_key: LHB22CD
  - name: welsh_postcode_areas
    kind: feature_collection_dir
    path: welsh-postcode-areas
    code_key: name
priority: [icb, ccg, wales_health_boards]
wales:
  aggregate_dataset: wales_health_boards
  sub_region_dataset: welsh_postcode_areas
  postcode_areas: [CF, SA]
  whole_country_codes: [W92000004]
simplify:
  tolerance: 0
"""

CATEGORIES_YML = """registry: services.json
artifacts_dir: out/geo
categories:
  - id: aac
    output: aac-services-geo.geojson
  - id: wcs
    output: wcs-services-geo.geojson
  - id: services
    output: services-geo.json
    match_all: true
lookup:
  categories: [aac, wcs]
"""

REGISTRY = {
    "services": [
        {
            "id": "svc-a",
            "serviceName": "North Service",
            "postcode": "LS1 4AP",
            "ccgCodes": ["e54000001", "E38000001"],
            "servicesOffered": ["aac"],
            "country": "England",
        },
        {
            "id": "svc-b",
            "serviceName": "Cardiff Service",
            "postcode": "CF10 3NP",
            "ccgCodes": ["CF10"],
            "servicesOffered": ["wcs"],
            "country": "Wales",
        },
        {
            "id": "svc-c",
            "serviceName": "Swansea Service",
            "postcode": "SA1 1DP",
            "ccgCodes": ["SA1"],
            "servicesOffered": ["aac", "wcs"],
            "country": "Wales",
        },
        {
            "id": "svc-d",
            "serviceName": "Unmapped Service",
            "postcode": None,
            "ccgCodes": ["X99"],
            "servicesOffered": ["wcs"],
            "country": "England",
        },
    ]
}


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    target = tmp_path / "config"
    target.mkdir()
    (target / "boundary_sources.yml").write_text(BOUNDARY_SOURCES_YML, encoding="utf-8")
    (target / "categories.yml").write_text(CATEGORIES_YML, encoding="utf-8")
    shutil.copy(Path("config") / "geocoding.yml", target / "geocoding.yml")
    return target


def populate_data_dir(data_dir: Path) -> Path:
    boundaries = data_dir / "boundaries"
    write_json(boundaries / "icb.json", feature_collection("ICB23CD", [("E54000001", square(-2.0, 53.0))]))
    write_json(boundaries / "ccg.json", feature_collection("CCG21CD", [("E38000001", square(-1.0, 53.0))]))
    write_json(
        boundaries / "lhb.json",
        feature_collection("LHB22CD", [("W11000001", square(-4.0, 51.0)), ("W11000002", square(-4.0, 52.0))]),
    )
    write_json(
        boundaries / "welsh-postcode-areas" / "cf.json",
        feature_collection("name", [("CF10", square(-3.3, 51.4, 0.2))]),
    )
    write_json(data_dir / "services.json", REGISTRY, sort_keys=False)
    return data_dir


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return populate_data_dir(tmp_path / "data")


@pytest.fixture
def index_cache() -> IndexCache:
    return IndexCache()


@pytest.fixture
def make_square():
    return square


@pytest.fixture
def make_data_dir():
    return populate_data_dir
