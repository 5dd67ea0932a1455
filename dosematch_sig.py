"""Rule-based SIG parser: dose, frequency, route, duration and indication."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Pattern, Tuple, TypeVar

from dosematch_types import ORIGIN_RULES, DosingInstruction, Duration
from dosematch_units import normalize_unit

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.70
MAX_CONFIDENCE = 0.95
BASE_CONFIDENCE = 0.70
AUXILIARY_BONUS = 0.05

DOSE_VERBS = r"(?:take|inject|inhale|apply|use|instill|give|chew|insert|place)"
NUMBER = r"(\d+(?:\.\d+)?)"

DOSE_RANGE_RE = re.compile(
    rf"\b{DOSE_VERBS}\s+{NUMBER}\s*(?:-|to)\s*{NUMBER}\s*([a-z]+)"
)
DOSE_SINGLE_RE = re.compile(rf"\b{DOSE_VERBS}\s+{NUMBER}\s*([a-z]+)")
STRENGTH_RE = re.compile(
    rf"\b{NUMBER}\s*(mcg|mg|ml|g|units?|u)\b"
    r"(?:\s+(?:tablet|capsule|cap|tab|puff|dose|unit)s?\b)?"
)
STRENGTH_UNIT_MAP = {
    "ml": "mL",
    "g": "g",
    "mg": "g",
    "mcg": "g",
    "u": "U",
    "unit": "U",
    "units": "U",
}

# longer phrases are tried first, see FREQUENCY_PATTERNS
FREQUENCY_TABLE: Tuple[Tuple[str, int], ...] = (
    ("three times daily", 3),
    ("three times a day", 3),
    ("four times daily", 4),
    ("four times a day", 4),
    ("twice daily", 2),
    ("twice a day", 2),
    ("once daily", 1),
    ("once a day", 1),
    ("every 4 hours", 6),
    ("every 6 hours", 4),
    ("every 8 hours", 3),
    ("every 12 hours", 2),
    ("every 24 hours", 1),
    ("at bedtime", 1),
    ("at night", 1),
    ("in the morning", 1),
    ("each morning", 1),
    ("each bedtime", 1),
    ("qid", 4),
    ("tid", 3),
    ("tds", 3),
    ("bid", 2),
    ("qd", 1),
    ("od", 1),
    ("q4h", 6),
    ("q6h", 4),
    ("q8h", 3),
    ("q12h", 2),
    ("q24h", 1),
    ("qhs", 1),
    ("qam", 1),
)
SHORT_KEY_LENGTH = 3

FREQUENCY_PATTERNS: Tuple[Tuple[str, int, Optional[Pattern[str]]], ...] = tuple(
    (
        key,
        per_day,
        re.compile(rf"\b{re.escape(key)}\b") if len(key) <= SHORT_KEY_LENGTH else None,
    )
    for key, per_day in sorted(FREQUENCY_TABLE, key=lambda item: -len(item[0]))
)

TIMES_PER_DAY_RE = re.compile(r"\b(\d+)\s*times?\s*(?:a\s*day|daily|per\s*day)")
EVERY_RANGE_RE = re.compile(
    r"\bevery\s+(\d+)\s*(?:-|to)\s*(\d+)\s*(?:hours?|hrs?|h)\b"
)
EVERY_HOURS_RE = re.compile(r"\b(?:every\s+|q)(\d+)\s*(?:hours?|hrs?|h)\b")

ROUTE_TERMS = (
    "mouth|po|topical|skin|eyes?|ears?|rectum|rectally|vaginally|sublingual|"
    "inhaled|inhalation|iv|intravenous|im|intramuscular|sc|subcutaneous"
)
PREP_ROUTE_RE = re.compile(rf"\b(?:by|via|in|into|through)\s+({ROUTE_TERMS})\b")
BARE_ROUTE_RE = re.compile(
    r"\b(po|iv|im|sc|inhaled|inhalation|topical|sublingual|rectal|rectally|"
    r"vaginal|vaginally|oral|intravenous|intramuscular|subcutaneous|transdermal)\b"
)

FOR_DURATION_RE = re.compile(r"\bfor\s+(\d+)\s*(days?|weeks?|months?)\b")
X_DURATION_RE = re.compile(r"\bx\s*(\d+)\s*(?:days?|d)\b")

AS_NEEDED_RE = re.compile(r"\bprn\b|\bas needed\b")
INDICATION_RE = re.compile(
    r"\b(?:for|prn)\s+(?:for\s+)?([a-z][a-z\s]*?)\s*(?=[.,;]|$|\bas needed\b)"
)


@dataclass(frozen=True)
class DoseMatch:
    amount: float
    unit: str
    amount_max: Optional[float] = None
    strength: Optional[float] = None
    strength_unit: Optional[str] = None


@dataclass(frozen=True)
class FrequencyMatch:
    per_day: int
    confidence: float
    per_day_max: Optional[int] = None


T = TypeVar("T")
Extractor = Callable[[str], Optional[T]]


def first_match(
    extractors: Tuple[Tuple[str, Extractor], ...], sig: str
) -> Tuple[Optional[str], Optional[T]]:
    for tag, extractor in extractors:
        found = extractor(sig)
        if found is not None:
            return tag, found
    return None, None


def clean_sig(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").lower()).strip()


def dose_range(sig: str) -> Optional[DoseMatch]:
    match = DOSE_RANGE_RE.search(sig)
    if not match:
        return None
    low, high = sorted((float(match.group(1)), float(match.group(2))))
    return DoseMatch(amount=low, amount_max=high, unit=normalize_unit(match.group(3)))


def dose_single(sig: str) -> Optional[DoseMatch]:
    match = DOSE_SINGLE_RE.search(sig)
    if not match:
        return None
    return DoseMatch(amount=float(match.group(1)), unit=normalize_unit(match.group(2)))


def dose_strength(sig: str) -> Optional[DoseMatch]:
    match = STRENGTH_RE.search(sig)
    if not match:
        return None
    strength_unit = match.group(2)
    return DoseMatch(
        amount=1.0,
        unit=STRENGTH_UNIT_MAP.get(strength_unit, "EA"),
        strength=float(match.group(1)),
        strength_unit=strength_unit,
    )


DOSE_EXTRACTORS: Tuple[Tuple[str, Extractor], ...] = (
    ("dose_range", dose_range),
    ("dose_single", dose_single),
    ("strength_only", dose_strength),
)


def frequency_table(sig: str) -> Optional[FrequencyMatch]:
    for key, per_day, pattern in FREQUENCY_PATTERNS:
        hit = pattern.search(sig) is not None if pattern is not None else key in sig
        if hit:
            return FrequencyMatch(per_day=per_day, confidence=0.9)
    return None


def frequency_times_per_day(sig: str) -> Optional[FrequencyMatch]:
    match = TIMES_PER_DAY_RE.search(sig)
    if not match or int(match.group(1)) < 1:
        return None
    return FrequencyMatch(per_day=int(match.group(1)), confidence=0.95)


def frequency_hour_range(sig: str) -> Optional[FrequencyMatch]:
    match = EVERY_RANGE_RE.search(sig)
    if not match:
        return None
    shortest, longest = sorted((int(match.group(1)), int(match.group(2))))
    if shortest < 1:
        return None
    return FrequencyMatch(
        per_day=max(1, 24 // longest),
        per_day_max=max(1, 24 // shortest),
        confidence=0.95,
    )


def frequency_every_hours(sig: str) -> Optional[FrequencyMatch]:
    match = EVERY_HOURS_RE.search(sig)
    if not match or int(match.group(1)) < 1:
        return None
    return FrequencyMatch(per_day=max(1, 24 // int(match.group(1))), confidence=0.9)


FREQUENCY_EXTRACTORS: Tuple[Tuple[str, Extractor], ...] = (
    ("frequency_table", frequency_table),
    ("times_per_day", frequency_times_per_day),
    ("every_hour_range", frequency_hour_range),
    ("every_hours", frequency_every_hours),
)
DEFAULT_FREQUENCY = FrequencyMatch(per_day=1, confidence=0.3)


def extract_route(sig: str) -> Optional[str]:
    match = PREP_ROUTE_RE.search(sig) or BARE_ROUTE_RE.search(sig)
    return match.group(1) if match else None


def extract_duration(sig: str) -> Optional[Duration]:
    match = FOR_DURATION_RE.search(sig)
    if match and int(match.group(1)) > 0:
        unit = match.group(2)
        return Duration(value=int(match.group(1)), unit=unit if unit.endswith("s") else f"{unit}s")
    match = X_DURATION_RE.search(sig)
    if match and int(match.group(1)) > 0:
        return Duration(value=int(match.group(1)), unit="days")
    return None


def extract_indication(sig: str) -> Tuple[Optional[str], bool]:
    is_as_needed = AS_NEEDED_RE.search(sig) is not None
    match = INDICATION_RE.search(sig)
    indication = match.group(1).strip() if match else ""
    return (indication or None), is_as_needed


def score_confidence(
    frequency: FrequencyMatch,
    route: Optional[str],
    duration: Optional[Duration],
    indication: Optional[str],
) -> float:
    confidence = BASE_CONFIDENCE
    if frequency.confidence > 0.9:
        confidence += 0.15
    elif frequency.confidence > 0.8:
        confidence += 0.10
    for present in (route, duration, indication):
        if present:
            confidence += AUXILIARY_BONUS
    return round(min(MAX_CONFIDENCE, confidence), 2)


def parse_sig(
    sig_text: str, days_supply: int, min_confidence: float = MIN_CONFIDENCE
) -> Optional[DosingInstruction]:
    """Parse a SIG with the rule cascade.

    Returns None when no numeric dose is found or the confidence falls below
    ``min_confidence``; callers treat that as a request for the fallback parser.
    """
    sig = clean_sig(sig_text)
    dose_tag, dose = first_match(DOSE_EXTRACTORS, sig)
    if dose is None:
        logger.debug("no dose pattern in %r", sig)
        return None

    frequency_tag, frequency = first_match(FREQUENCY_EXTRACTORS, sig)
    if frequency is None:
        frequency_tag, frequency = "default", DEFAULT_FREQUENCY

    route = extract_route(sig)
    duration = extract_duration(sig)
    indication, is_as_needed = extract_indication(sig)
    confidence = score_confidence(frequency, route, duration, indication)

    dosing = DosingInstruction(
        amount_per_dose=dose.amount,
        amount_max=dose.amount_max,
        unit=dose.unit,
        frequency_per_day=frequency.per_day,
        frequency_max=frequency.per_day_max,
        days_supply=days_supply,
        route=route,
        duration=duration,
        indication=indication,
        is_as_needed=is_as_needed,
        strength=dose.strength,
        strength_unit=dose.strength_unit,
        confidence=confidence,
        origin=ORIGIN_RULES,
    )
    logger.debug(
        "parsed %r via %s/%s: %s %s x%s/day, max daily %s, confidence %.2f",
        sig,
        dose_tag,
        frequency_tag,
        dosing.amount_per_dose,
        dosing.unit,
        dosing.frequency_per_day,
        dosing.max_daily_dose,
        confidence,
    )

    if confidence < min_confidence:
        logger.debug("confidence %.2f below %.2f, abstaining", confidence, min_confidence)
        return None
    return dosing
