import pytest

from dosematch_fallback import (
    DEFAULT_CONFIDENCE,
    dosing_from_payload,
    parse_fallback_content,
    resolve_sig,
)
from dosematch_types import ORIGIN_FALLBACK, ORIGIN_RULES, DosingInstruction


def test_parse_fallback_content_strips_code_fences():
    content = '```json\n{"amountPerDose": 2, "unit": "tablet", "frequencyPerDay": 3}\n```'
    assert parse_fallback_content(content) == {
        "amountPerDose": 2,
        "unit": "tablet",
        "frequencyPerDay": 3,
    }


def test_parse_fallback_content_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_fallback_content("[1, 2, 3]")
    with pytest.raises(ValueError):
        parse_fallback_content("not json")


def test_dosing_from_payload_clamps_values():
    dosing = dosing_from_payload(
        {"amount_per_dose": 0, "unit": "ml", "frequency_per_day": 48, "confidence": 3},
        14,
    )
    assert dosing.amount_per_dose == 0.1
    assert dosing.unit == "mL"
    assert dosing.frequency_per_day == 24
    assert dosing.confidence == 1.0
    assert dosing.days_supply == 14
    assert dosing.origin == ORIGIN_FALLBACK


def test_dosing_from_payload_requires_amount():
    with pytest.raises(KeyError):
        dosing_from_payload({"frequencyPerDay": 2}, 14)


def test_confident_rules_skip_fallback():
    calls = []

    def fallback(sig_text, days_supply):
        calls.append(sig_text)
        return None

    dosing = resolve_sig("take 1 tablet twice daily", 30, fallback=fallback)
    assert dosing.origin == ORIGIN_RULES
    assert calls == []


def test_fallback_used_when_rules_abstain():
    def fallback(sig_text, days_supply):
        return {"amountPerDose": 2, "unit": "capsule", "frequencyPerDay": 2, "confidence": 0.8}

    dosing = resolve_sig("as directed by physician", 10, fallback=fallback)
    assert dosing.origin == ORIGIN_FALLBACK
    assert dosing.amount_per_dose == 2
    assert dosing.unit == "EA"
    assert dosing.frequency_per_day == 2
    assert dosing.days_supply == 10


def test_fallback_may_return_dosing_instruction():
    def fallback(sig_text, days_supply):
        return DosingInstruction(
            amount_per_dose=5, unit="mL", frequency_per_day=3, days_supply=1, confidence=0.6
        )

    dosing = resolve_sig("use as directed", 7, fallback=fallback)
    assert dosing.origin == ORIGIN_FALLBACK
    assert dosing.days_supply == 7
    assert dosing.unit == "mL"


def test_failing_fallback_yields_default():
    def fallback(sig_text, days_supply):
        raise RuntimeError("service unavailable")

    dosing = resolve_sig("as directed", 30, fallback=fallback)
    assert dosing.amount_per_dose == 1
    assert dosing.frequency_per_day == 1
    assert dosing.unit == "EA"
    assert dosing.confidence == DEFAULT_CONFIDENCE
    assert dosing.origin == ORIGIN_FALLBACK


def test_no_fallback_yields_default():
    dosing = resolve_sig("as directed", 30)
    assert dosing.confidence == DEFAULT_CONFIDENCE


def test_low_confidence_rules_kept_when_fallback_returns_nothing():
    dosing = resolve_sig(
        "take 2 tablets daily", 30, fallback=lambda text, days: None, rules_threshold=0.9
    )
    assert dosing.origin == ORIGIN_RULES
    assert dosing.amount_per_dose == 2


def test_low_confidence_rules_replaced_by_fallback():
    dosing = resolve_sig(
        "take 2 tablets daily",
        30,
        fallback=lambda text, days: {"amountPerDose": 2, "frequencyPerDay": 1},
        rules_threshold=0.9,
    )
    assert dosing.origin == ORIGIN_FALLBACK
