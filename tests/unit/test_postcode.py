from geoapi_pt.common.postcode import (
    PostalCode,
    find_postal_code,
    normalise_full_postal_code,
    parse_postal_code,
)


def test_parse_accepts_hyphenated_compact_and_prefix_forms():
    assert parse_postal_code("1950-449") == PostalCode("1950", "449")
    assert parse_postal_code("1950449") == PostalCode("1950", "449")
    assert parse_postal_code("1950") == PostalCode("1950", None)


def test_parse_strips_whitespace_and_hyphen_noise():
    assert parse_postal_code(" 1950 - 449 ") == PostalCode("1950", "449")
    assert parse_postal_code("1950 449") == PostalCode("1950", "449")
    assert parse_postal_code(" 3150 ") == PostalCode("3150", None)


def test_parse_rejects_empty_and_none():
    assert parse_postal_code(None) is None
    assert parse_postal_code("   ") is None


def test_parse_rejects_wrong_lengths_and_letters():
    assert parse_postal_code("195") is None
    assert parse_postal_code("19504") is None
    assert parse_postal_code("19504491") is None
    assert parse_postal_code("19A0-449") is None


def test_parse_rejects_code_inside_free_text():
    assert parse_postal_code("1950-449 LISBOA") is None
    assert parse_postal_code("abcdefgh 1950-449") is None


def test_find_extracts_code_followed_by_locality():
    assert find_postal_code("1950-449 LISBOA") == PostalCode("1950", "449")
    assert find_postal_code("3150") == PostalCode("3150", None)
    assert find_postal_code("sem codigo postal") is None
    assert find_postal_code(None) is None


def test_full_code_only_helper_rejects_prefixes():
    assert normalise_full_postal_code("1950") is None
    assert normalise_full_postal_code("1950-449") == PostalCode("1950", "449")
    assert normalise_full_postal_code("1950-449 LISBOA") == PostalCode("1950", "449")


def test_postal_code_string_form():
    assert str(PostalCode("3150", "012")) == "3150-012"
    assert str(PostalCode("3150", None)) == "3150"
    assert PostalCode("3150", None).is_prefix
