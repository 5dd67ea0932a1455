"""Rules-then-fallback SIG resolution.

The fallback parser is an injected callable (typically a language-model client
living outside this package). It receives ``(sig_text, days_supply)`` and
returns either a ``DosingInstruction`` or a mapping shaped like::

    {"amountPerDose": 1, "unit": "EA", "frequencyPerDay": 2,
     "confidence": 0.8, "rationale": "..."}
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from typing import Callable, Dict, Mapping, Optional, Union

from dosematch_sig import MIN_CONFIDENCE, parse_sig
from dosematch_types import ORIGIN_FALLBACK, DosingInstruction
from dosematch_units import normalize_unit

logger = logging.getLogger(__name__)

FallbackResult = Union[DosingInstruction, Mapping[str, object], None]
FallbackParser = Callable[[str, int], FallbackResult]

MIN_FALLBACK_AMOUNT = 0.1
MAX_FALLBACK_FREQUENCY = 24
DEFAULT_CONFIDENCE = 0.1

CODE_FENCE_RE = re.compile(r"```(?:json)?\s*")


def parse_fallback_content(content: str) -> Dict[str, object]:
    text = CODE_FENCE_RE.sub("", content or "").strip()
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError(f"Fallback response is not a JSON object: {text[:80]!r}")
    return payload


def _lookup(payload: Mapping[str, object], *keys: str) -> object:
    for key in keys:
        if key in payload:
            return payload[key]
    raise KeyError(keys[0])


def dosing_from_payload(payload: Mapping[str, object], days_supply: int) -> DosingInstruction:
    amount = float(_lookup(payload, "amountPerDose", "amount_per_dose"))
    frequency = int(float(_lookup(payload, "frequencyPerDay", "frequency_per_day")))
    confidence = float(payload.get("confidence", 0.0) or 0.0)
    return DosingInstruction(
        amount_per_dose=max(MIN_FALLBACK_AMOUNT, amount),
        unit=normalize_unit(str(payload.get("unit", "EA"))),
        frequency_per_day=max(1, min(MAX_FALLBACK_FREQUENCY, frequency)),
        days_supply=days_supply,
        confidence=max(0.0, min(1.0, confidence)),
        origin=ORIGIN_FALLBACK,
        rationale=str(payload.get("rationale") or "Parsed by fallback parser"),
    )


def default_dosing(days_supply: int) -> DosingInstruction:
    return DosingInstruction(
        amount_per_dose=1.0,
        unit="EA",
        frequency_per_day=1,
        days_supply=days_supply,
        confidence=DEFAULT_CONFIDENCE,
        origin=ORIGIN_FALLBACK,
        rationale="Default fallback: no parsing succeeded",
    )


def call_fallback(
    fallback: FallbackParser, sig_text: str, days_supply: int
) -> Optional[DosingInstruction]:
    try:
        result = fallback(sig_text, days_supply)
        if result is None:
            return None
        if isinstance(result, DosingInstruction):
            return replace(result, origin=ORIGIN_FALLBACK, days_supply=days_supply)
        return dosing_from_payload(result, days_supply)
    except Exception as exc:
        logger.warning("fallback parser failed: %s", exc)
        return None


def resolve_sig(
    sig_text: str,
    days_supply: int,
    fallback: Optional[FallbackParser] = None,
    rules_threshold: float = MIN_CONFIDENCE,
) -> DosingInstruction:
    """Rules first; fallback on abstention or low confidence; never abstains."""
    rules = parse_sig(sig_text, days_supply)
    if rules is not None and rules.confidence >= rules_threshold:
        return rules

    if fallback is not None:
        logger.debug("rules result insufficient for %r, using fallback", sig_text)
        resolved = call_fallback(fallback, sig_text, days_supply)
        if resolved is not None:
            return resolved

    if rules is not None:
        logger.debug("fallback unavailable, keeping rules result")
        return rules
    logger.warning("no parser produced a result for %r, using defaults", sig_text)
    return default_dosing(days_supply)
