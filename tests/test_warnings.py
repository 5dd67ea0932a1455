from dosematch_pack import recommend_packs
from dosematch_types import STATUS_ACTIVE, STATUS_INACTIVE, PackageRecord
from dosematch_warnings import generate_warnings


def pkg(package_id, size, status=STATUS_ACTIVE):
    return PackageRecord(package_id=package_id, package_size=size, unit="EA", status=status)


def codes_for(target, catalog):
    return [w.code for w in generate_warnings(recommend_packs(target, "EA", catalog), catalog)]


def test_exact_active_match_is_quiet():
    assert codes_for(30, [pkg("A", 30)]) == []


def test_inactive_recommendation_warns():
    catalog = [pkg("OLD", 30, status=STATUS_INACTIVE)]
    warnings = generate_warnings(recommend_packs(30, "EA", catalog), catalog)
    assert [w.code for w in warnings] == ["INACTIVE_PACKAGE_RECOMMENDED"]
    assert warnings[0].severity == "warning"
    assert "OLD" in warnings[0].message


def test_inactive_packages_present_is_informational():
    catalog = [pkg("OLD", 30, status=STATUS_INACTIVE), pkg("NEW", 30)]
    warnings = generate_warnings(recommend_packs(30, "EA", catalog), catalog)
    assert [(w.code, w.severity) for w in warnings] == [("INACTIVE_PACKAGES_PRESENT", "info")]
    assert warnings[0].message.startswith("1 inactive package(s)")


def test_multi_pack_reports_strategy():
    catalog = [pkg("A", 30)]
    warnings = generate_warnings(recommend_packs(55, "EA", catalog), catalog)
    assert [w.code for w in warnings] == ["NO_EXACT_MATCH"]
    assert "multi-pack strategy" in warnings[0].message


def test_high_overfill():
    assert codes_for(80, [pkg("A", 100)]) == ["NO_EXACT_MATCH", "HIGH_OVERFILL"]
    catalog = [pkg("A", 100)]
    high = generate_warnings(recommend_packs(80, "EA", catalog), catalog)[1]
    assert "25.0% overfill" in high.message
    assert "80 target" in high.message


def test_partial_fill():
    catalog = [pkg("A", 90)]
    warnings = generate_warnings(recommend_packs(100, "EA", catalog), catalog)
    assert [w.code for w in warnings] == ["NO_EXACT_MATCH", "PARTIAL_FILL"]
    assert "10.0% short" in warnings[1].message
    assert "100 target" in warnings[1].message
