"""Unit canonicalization for SIG doses and package sizes."""

from __future__ import annotations

from typing import Dict, Tuple

UNIT_ALIASES: Dict[str, str] = {
    # each
    "ea": "EA",
    "each": "EA",
    "tab": "EA",
    "tabs": "EA",
    "tablet": "EA",
    "tablets": "EA",
    "cap": "EA",
    "caps": "EA",
    "capsule": "EA",
    "capsules": "EA",
    "caplet": "EA",
    "caplets": "EA",
    "patch": "EA",
    "patches": "EA",
    "supp": "EA",
    "suppository": "EA",
    "suppositories": "EA",
    # volume
    "ml": "mL",
    "milliliter": "mL",
    "milliliters": "mL",
    "cc": "mL",
    # mass; mg is scaled by to_canonical
    "g": "g",
    "gram": "g",
    "grams": "g",
    "mg": "g",
    "milligram": "g",
    "milligrams": "g",
    # insulin
    "u": "U",
    "unit": "U",
    "units": "U",
    "iu": "U",
    # inhalers
    "puff": "actuations",
    "puffs": "actuations",
    "actuation": "actuations",
    "actuations": "actuations",
    "inhalation": "actuations",
    "inhalations": "actuations",
}

DEFAULT_UNIT = "EA"

# amount divisors for aliases that canonicalize to a larger unit
ALIAS_SCALE: Dict[str, float] = {"mg": 1000.0, "milligram": 1000.0, "milligrams": 1000.0}


def normalize_unit(raw: str) -> str:
    cleaned = (raw or "").strip().lower()
    return UNIT_ALIASES.get(cleaned, DEFAULT_UNIT)


def to_canonical(amount: float, raw_unit: str) -> Tuple[float, str]:
    cleaned = (raw_unit or "").strip().lower()
    divisor = ALIAS_SCALE.get(cleaned)
    if divisor is not None:
        return amount / divisor, UNIT_ALIASES[cleaned]
    return amount, normalize_unit(cleaned)


def units_match(first: str, second: str) -> bool:
    return normalize_unit(str(first)) == normalize_unit(str(second))
