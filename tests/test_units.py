from itertools import product

import pytest

from dosematch_types import CANONICAL_UNITS
from dosematch_units import UNIT_ALIASES, normalize_unit, to_canonical, units_match


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("tablet", "EA"),
        ("tab", "EA"),
        ("capsule", "EA"),
        ("caplet", "EA"),
        ("patch", "EA"),
        ("suppository", "EA"),
        ("ml", "mL"),
        ("cc", "mL"),
        ("milliliter", "mL"),
        ("gram", "g"),
        ("mg", "g"),
        ("iu", "U"),
        ("units", "U"),
        ("puffs", "actuations"),
        ("inhalation", "actuations"),
    ],
)
def test_normalize_unit_aliases(raw, expected):
    assert normalize_unit(raw) == expected


def test_normalize_unit_ignores_case_and_whitespace():
    assert normalize_unit("TABLET") == "EA"
    assert normalize_unit("  ML ") == "mL"
    assert normalize_unit("UNIT") == "U"


def test_unknown_unit_defaults_to_each():
    assert normalize_unit("unknown") == "EA"
    assert normalize_unit("") == "EA"


def test_canonical_units_normalize_to_themselves():
    for unit in CANONICAL_UNITS:
        assert normalize_unit(unit.lower()) == unit
        assert normalize_unit(unit) == unit


def test_every_alias_targets_a_canonical_unit():
    assert set(UNIT_ALIASES.values()) == set(CANONICAL_UNITS)


def test_to_canonical_scales_milligrams():
    assert to_canonical(500, "mg") == (0.5, "g")
    assert to_canonical(250, "MG") == (0.25, "g")


def test_to_canonical_passes_other_units_through():
    assert to_canonical(5, "mL") == (5, "mL")
    assert to_canonical(2, "g") == (2, "g")
    assert to_canonical(2, "puffs") == (2, "actuations")


def test_units_match_is_symmetric():
    samples = ["tablet", "EA", "ml", "cc", "mg", "g", "units", "puff", "bogus"]
    for a, b in product(samples, repeat=2):
        assert units_match(a, b) == units_match(b, a)
    assert units_match("tablet", "capsule")
    assert units_match("mg", "gram")
    assert not units_match("ml", "g")


@pytest.mark.parametrize("raw", ["drop", "drops"])
def test_drops_have_no_volume_alias(raw):
    assert raw not in UNIT_ALIASES
    assert normalize_unit(raw) == "EA"
