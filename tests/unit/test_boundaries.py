from pathlib import Path

import pytest

from geoapi_pt.common.errors import MalformedBoundaryError, StageError
from geoapi_pt.common.fs import write_json
from geoapi_pt.common.models import AdministrativeRegion, PolygonPart
from geoapi_pt.resolver.boundaries import RegionTables, load_region_tables, load_regions, parse_geometry

FREGUESIA_PROPERTIES = {"code": "DICOFRE", "name": "Freguesia", "concelho": "Concelho", "distrito": "Distrito"}
FIXTURES = Path("tests/fixtures/data")
BOUNDARIES_CONFIG = {
    "source_epsg": 4326,
    "freguesias": {"path": "raw/caop/freguesias.geojson", "properties": FREGUESIA_PROPERTIES},
    "concelhos": {
        "path": "raw/caop/concelhos.geojson",
        "properties": {"code": "DICO", "name": "Concelho", "distrito": "Distrito"},
    },
    "distritos": {"path": "raw/caop/distritos.geojson", "properties": {"code": "DI", "name": "Distrito"}},
}


def _feature_collection(geometry: dict) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"DICOFRE": "010101", "Freguesia": "Alfa", "Concelho": "Um", "Distrito": "Um"},
                "geometry": geometry,
            }
        ],
    }


def test_load_regions_keeps_source_order_and_fields():
    regions = load_regions(FIXTURES / "raw/caop/freguesias.geojson", "freguesia", FREGUESIA_PROPERTIES)

    assert [region.name for region in regions] == ["Alfa", "Beta", "Gama", "Delta"]
    alfa = regions[0]
    assert alfa.code == "010101"
    assert alfa.parents == {"concelho": "Concelho Um", "distrito": "Distrito Um"}
    assert alfa.registry_fields == {"AREA_HA": 4900}
    assert alfa.boundary[0].outer[0] == (40.0, -8.2)


def test_multipolygon_parts_and_holes_are_kept():
    regions = load_regions(FIXTURES / "raw/caop/freguesias.geojson", "freguesia", FREGUESIA_PROPERTIES)
    gama = regions[2]

    assert len(gama.boundary) == 2
    assert len(gama.boundary[0].holes) == 1
    assert gama.boundary[1].holes == ()


def test_open_ring_aborts_the_load(tmp_path: Path):
    path = tmp_path / "open.geojson"
    write_json(path, _feature_collection({"type": "Polygon", "coordinates": [[[0, 0], [0, 1], [1, 1], [1, 0]]]}))

    with pytest.raises(MalformedBoundaryError):
        load_regions(path, "freguesia", FREGUESIA_PROPERTIES)


def test_ring_with_too_few_distinct_vertices_aborts_the_load(tmp_path: Path):
    path = tmp_path / "thin.geojson"
    write_json(path, _feature_collection({"type": "Polygon", "coordinates": [[[0, 0], [0, 1], [0, 1], [0, 0]]]}))

    with pytest.raises(MalformedBoundaryError):
        load_regions(path, "freguesia", FREGUESIA_PROPERTIES)


def test_unsupported_or_missing_geometry_is_malformed():
    with pytest.raises(MalformedBoundaryError):
        parse_geometry({"type": "Point", "coordinates": [0, 0]}, 4326, "test")
    with pytest.raises(MalformedBoundaryError):
        parse_geometry(None, 4326, "test")


def test_missing_boundary_file_is_a_stage_error(tmp_path: Path):
    with pytest.raises(StageError):
        load_regions(tmp_path / "missing.geojson", "freguesia", FREGUESIA_PROPERTIES)


def test_load_region_tables_keys_parents_by_code():
    tables = load_region_tables(BOUNDARIES_CONFIG, FIXTURES)

    assert len(tables.freguesias) == 4
    assert sorted(tables.concelhos) == ["0101", "0201"]
    assert sorted(tables.distritos) == ["01", "02"]
    assert tables.parent(tables.freguesias[0], "concelho").code == "0101"
    assert tables.parent(tables.freguesias[0], "distrito").code == "01"


def test_parent_falls_back_to_recorded_fields_without_tables():
    freguesia = AdministrativeRegion(
        level="freguesia",
        code="110654",
        name="Santa Maria Maior",
        parents={"concelho": "Lisboa", "distrito": "Lisboa"},
    )
    tables = RegionTables(freguesias=(freguesia,))

    concelho = tables.parent(freguesia, "concelho")
    distrito = tables.parent(freguesia, "distrito")

    assert (concelho.name, concelho.code, concelho.parents) == ("Lisboa", "1106", {"distrito": "Lisboa"})
    assert (distrito.name, distrito.code) == ("Lisboa", "11")
    assert concelho.boundary == ()


def test_optional_levels_may_be_absent(tmp_path: Path):
    config = dict(BOUNDARIES_CONFIG, concelhos={"path": "raw/caop/none.geojson", "properties": {}}, distritos=None)

    tables = load_region_tables(config, FIXTURES)

    assert tables.concelhos == {}
    assert tables.distritos == {}


AGUA_DE_PAU = AdministrativeRegion(
    level="freguesia",
    code="420201",
    name="Água de Pau",
    parents={"concelho": "Lagoa", "distrito": "Ilha de São Miguel"},
    boundary=(PolygonPart(outer=((37.7, -25.6), (37.7, -25.5), (37.8, -25.5), (37.8, -25.6), (37.7, -25.6))),),
)
LAGOA_TABLES = RegionTables(
    freguesias=(AGUA_DE_PAU,),
    concelhos={
        "0806": AdministrativeRegion(level="concelho", code="0806", name="Lagoa", parents={"distrito": "Faro"}),
        "4202": AdministrativeRegion(level="concelho", code="4202", name="Lagoa", parents={"distrito": "Ilha de São Miguel"}),
    },
    distritos={
        "08": AdministrativeRegion(level="distrito", code="08", name="Faro"),
        "42": AdministrativeRegion(level="distrito", code="42", name="Ilha de São Miguel"),
    },
)


def test_parent_with_duplicate_concelho_name_follows_code_prefix():
    assert LAGOA_TABLES.parent(AGUA_DE_PAU, "concelho").code == "4202"
    assert LAGOA_TABLES.parent(AGUA_DE_PAU, "distrito").code == "42"


def test_parent_name_match_is_narrowed_by_distrito():
    algarve = AdministrativeRegion(level="freguesia", code="", name="Ferragudo", parents={"concelho": "Lagoa", "distrito": "Faro"})
    unknown = AdministrativeRegion(level="freguesia", code="", name="?", parents={"concelho": "Lagoa", "distrito": ""})

    assert LAGOA_TABLES.parent(algarve, "concelho").code == "0806"
    assert LAGOA_TABLES.parent(unknown, "concelho").boundary == ()
    assert LAGOA_TABLES.parent(unknown, "concelho").code == ""
