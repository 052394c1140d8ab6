import shutil
from pathlib import Path

from geoapi_pt.common.config_loader import load_config
from geoapi_pt.common.models import AdministrativeRegion, PolygonPart
from geoapi_pt.pipeline.artifact_store import ArtifactStore
from geoapi_pt.resolver.boundaries import RegionTables, load_regions
from geoapi_pt.resolver.lookup import GeoContext, find_records, lookup_records

FIXTURES = Path("tests/fixtures/data")
RECORDS = [
    {"code": "110601", "name": "São João das Lampas", "concelho": "Sintra"},
    {"code": "110602", "name": "Sao Joao  da Talha", "concelho": "Loures"},
    {"code": "030101", "name": "Amares", "concelho": "Amares"},
]


def test_find_records_substring_ignores_case_and_accents():
    matches = find_records(RECORDS, "name", "SAO JOAO")

    assert [record["code"] for record in matches] == ["110601", "110602"]


def test_find_records_exact_requires_whole_value():
    assert find_records(RECORDS, "name", "amares", exact=True) == [RECORDS[2]]
    assert find_records(RECORDS, "name", "amar", exact=True) == []
    assert find_records(RECORDS, "name", "sao joao da talha", exact=True) == [RECORDS[1]]


def test_lookup_records_unwraps_single_match_on_unique_key():
    assert lookup_records(RECORDS, {"code": "030101"}) == RECORDS[2]
    assert lookup_records(RECORDS, {"concelho": "amares"}) == [RECORDS[2]]
    assert lookup_records(RECORDS, {"name": "nowhere"}) == []


def test_lookup_records_combines_filters():
    result = lookup_records(RECORDS, {"name": "joao", "concelho": "loures"})

    assert result == RECORDS[1]


def test_context_from_fixture_config(tmp_path: Path):
    data_dir = tmp_path / "data"
    shutil.copytree(FIXTURES, data_dir)
    context = GeoContext.build(load_config(Path("config")), data_dir)

    assert context.gps(40.4, -8.0)["freguesia"]["name"] == "Delta"
    assert context.gps(45.0, -8.0) is None
    assert context.postal_code("3150-012") is None
    assert context.freguesias(name="gama")["code"] == "020101"
    assert [r["name"] for r in context.freguesias(concelho="Concelho Um", exact=True)] == ["Alfa", "Beta"]
    assert context.distritos(name="Distrito Um")["code"] == "01"
    assert [r["code"] for r in context.municipios()] == ["0201", "0101"]


def test_parents_are_derived_without_parent_tables(tmp_path: Path):
    freguesias = load_regions(
        FIXTURES / "raw/caop/freguesias.geojson",
        "freguesia",
        {"code": "DICOFRE", "name": "Freguesia", "concelho": "Concelho", "distrito": "Distrito"},
    )
    context = GeoContext.from_tables(RegionTables(freguesias=freguesias), ArtifactStore(tmp_path / "pc"))

    municipios = context.municipios()

    assert [(r["code"], r["name"]) for r in municipios] == [("0201", "Concelho Dois"), ("0101", "Concelho Um")]
    assert context.municipios(name="um")["distrito"] == "Distrito Um"
    assert context.distritos(code="02")["name"] == "Distrito Dois"


def _lagoa_freguesia(code: str, distrito: str, lat: float) -> AdministrativeRegion:
    ring = ((lat, -25.6), (lat, -25.5), (lat + 0.1, -25.5), (lat + 0.1, -25.6), (lat, -25.6))
    return AdministrativeRegion(
        level="freguesia",
        code=code,
        name=f"Freguesia {code}",
        parents={"concelho": "Lagoa", "distrito": distrito},
        boundary=(PolygonPart(outer=ring),),
    )


def test_same_name_municipios_are_all_listed(tmp_path: Path):
    concelhos = {
        "0806": AdministrativeRegion(level="concelho", code="0806", name="Lagoa", parents={"distrito": "Faro"}),
        "4202": AdministrativeRegion(level="concelho", code="4202", name="Lagoa", parents={"distrito": "Ilha de São Miguel"}),
    }
    freguesias = (_lagoa_freguesia("080601", "Faro", 37.1), _lagoa_freguesia("420201", "Ilha de São Miguel", 37.7))
    context = GeoContext.from_tables(RegionTables(freguesias=freguesias, concelhos=concelhos), ArtifactStore(tmp_path / "pc"))

    matches = context.municipios(name="Lagoa", exact=True)

    assert [record["code"] for record in matches] == ["0806", "4202"]
    assert context.municipios(code="4202")["distrito"] == "Ilha de São Miguel"


def test_same_name_municipios_are_kept_when_derived(tmp_path: Path):
    freguesias = (_lagoa_freguesia("080601", "Faro", 37.1), _lagoa_freguesia("420201", "Ilha de São Miguel", 37.7))
    context = GeoContext.from_tables(RegionTables(freguesias=freguesias), ArtifactStore(tmp_path / "pc"))

    assert [record["code"] for record in context.municipios(name="lagoa")] == ["0806", "4202"]
