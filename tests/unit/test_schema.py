import copy

import pytest

from geoapi_pt.common.errors import ConfigError
from geoapi_pt.common.schema import validate_geoapi_config

BASE_CONFIG = {
    "address_feed": {
        "path": "feed.csv",
        "delimiter": ",",
        "source_epsg": 4326,
        "fields": {
            "lat_candidates": ["lat"],
            "lon_candidates": ["lon"],
            "street_candidates": [],
            "house_number_candidates": [],
            "postcode_candidates": ["postcode"],
        },
    },
    "postal_registry": {"path": "cp.csv", "delimiter": ";", "cp4_field": "CP4", "cp3_field": "CP3"},
    "artifacts": {"root": "out"},
    "aggregation": {"center_of_mass_policy": "occurrence", "workers": 1},
    "boundaries": {
        "source_epsg": 4326,
        "freguesias": {
            "path": "f.geojson",
            "properties": {"code": "DICOFRE", "name": "Freguesia", "concelho": "Concelho", "distrito": "Distrito"},
        },
    },
    "validation": {"bbox_wgs84": {"min_lat": 1, "max_lat": 2, "min_lon": 3, "max_lon": 4}},
}


def _config(**overrides) -> dict:
    cfg = copy.deepcopy(BASE_CONFIG)
    for section, values in overrides.items():
        cfg[section].update(values)
    return cfg


def test_validate_accepts_minimal_shape():
    validated = validate_geoapi_config(_config())

    assert validated["artifacts"]["root"] == "out"


def test_validate_rejects_unknown_key_by_default():
    bad = _config()
    bad["unexpected"] = True

    with pytest.raises(ConfigError):
        validate_geoapi_config(bad)


def test_validate_allows_unknown_when_enabled():
    okay = _config(artifacts={"extra": 1})

    validate_geoapi_config(okay, allow_unknown=True)


def test_validate_rejects_missing_required_key():
    bad = _config()
    del bad["postal_registry"]["cp3_field"]

    with pytest.raises(ConfigError):
        validate_geoapi_config(bad)


@pytest.mark.parametrize(
    "overrides",
    [
        {"aggregation": {"center_of_mass_policy": "median"}},
        {"aggregation": {"workers": 0}},
        {"artifacts": {"precision": -1}},
        {"boundaries": {"concelhos": {"path": "c.geojson", "properties": {"code": "DICO"}}}},
    ],
)
def test_validate_rejects_bad_values(overrides):
    with pytest.raises(ConfigError):
        validate_geoapi_config(_config(**overrides))


def test_validate_accepts_optional_parent_levels():
    cfg = _config(
        boundaries={
            "concelhos": {"path": "c.geojson", "properties": {"code": "DICO", "name": "Concelho", "distrito": "Distrito"}},
            "distritos": None,
        }
    )

    validate_geoapi_config(cfg)
