"""Pack selection: exact, same-package multi-pack and nearest single package."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

import numpy as np

from dosematch_types import (
    MATCH_EXACT,
    MATCH_MULTI_PACK,
    MATCH_OVERFILL,
    MATCH_UNDERFILL,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_RANK,
    InvalidInputError,
    NoMatchingUnitError,
    PackageRecord,
    PackComposition,
    Recommendation,
    RecommendationOption,
)
from dosematch_units import normalize_unit, units_match

logger = logging.getLogger(__name__)

DEFAULT_MAX_PACKS = 3
OVERFILL_CAP = 0.20
NEAR_PERFECT_OVERFILL = 5.0
MAX_MULTIPACK_PACKAGES = 20
MAX_ALTERNATIVES = 3
OVERFILL_BADGE_THRESHOLD = 10.0


def score_option(option: RecommendationOption, target: float) -> float:
    score = 0.0
    if option.status == STATUS_ACTIVE:
        score += 1000
    if option.match_type == MATCH_EXACT:
        score += 500
    elif option.match_type == MATCH_MULTI_PACK:
        score += 300

    score -= 2 * option.overfill_percent

    package_ids = {p.package_id for p in option.packs_used}
    if len(package_ids) == 1 and option.pack_count > 1:
        score += 100
    else:
        score -= 20 * len(option.packs_used)

    score -= 5 * len(option.packs_used)
    if len(option.packs_used) == 1:
        score += 50
    return score


def format_size(value: float) -> str:
    return f"{value:g}"


def find_exact_match(target: float, records: Sequence[PackageRecord]) -> Optional[RecommendationOption]:
    sizes = np.array([r.package_size for r in records], dtype=np.float64)
    hits = np.flatnonzero(sizes == target)
    if hits.size == 0:
        return None

    # catalog order is only the last tie-break
    best_index = min(hits.tolist(), key=lambda i: (STATUS_RANK.get(records[i].status, 1), i))
    record = records[best_index]
    badges = ["Exact Match"]
    if record.status == STATUS_INACTIVE:
        badges.append("Inactive")
        rationale = "Exact quantity match, but the package is inactive"
    else:
        rationale = f"Perfect match: 1 pack of {format_size(record.package_size)} {record.unit}"
    return RecommendationOption(
        primary_package_id=record.package_id,
        package_size=record.package_size,
        unit=record.unit,
        status=record.status,
        packs_used=(PackComposition(record.package_id, 1),),
        match_type=MATCH_EXACT,
        total_dispensed=record.package_size,
        badges=tuple(badges),
        rationale=rationale,
    )


def find_multi_pack_candidates(
    target: float, records: Sequence[PackageRecord], max_packs: int
) -> List[RecommendationOption]:
    active = [r for r in records if r.status == STATUS_ACTIVE][:MAX_MULTIPACK_PACKAGES]
    if not active or max_packs < 2:
        return []

    counts = np.arange(2, max_packs + 1)
    totals = np.outer(np.array([r.package_size for r in active], dtype=np.float64), counts)
    ceiling = target * (1 + OVERFILL_CAP)

    candidates: List[RecommendationOption] = []
    for row, record in enumerate(active):
        for col, count in enumerate(counts.tolist()):
            total = float(totals[row, col])
            if total < target:
                continue
            if total > ceiling:
                break

            overfill = (total - target) / target * 100
            badges = [f"{count} Packs" if count > 1 else "Multi-Pack"]
            if overfill > OVERFILL_BADGE_THRESHOLD:
                badges.append(f"+{overfill:.0f}% Overfill")
            candidates.append(
                RecommendationOption(
                    primary_package_id=record.package_id,
                    package_size=record.package_size,
                    unit=record.unit,
                    status=record.status,
                    packs_used=(PackComposition(record.package_id, count),),
                    match_type=MATCH_MULTI_PACK,
                    overfill_percent=overfill,
                    total_dispensed=total,
                    badges=tuple(badges),
                    rationale=(
                        f"{count}x packs of {format_size(record.package_size)} {record.unit}"
                        f" = {format_size(total)} {record.unit}"
                    ),
                )
            )
            if overfill < NEAR_PERFECT_OVERFILL:
                break
    return candidates


def find_nearest_match(target: float, records: Sequence[PackageRecord]) -> RecommendationOption:
    sizes = np.array([r.package_size for r in records], dtype=np.float64)
    distance = np.abs(sizes - target)
    inactive = np.array([r.status == STATUS_INACTIVE for r in records])
    not_active = np.array([r.status != STATUS_ACTIVE for r in records])
    # lexsort keys run last-to-first: inactive, then distance, then active-first, then order
    order = np.lexsort((np.arange(len(records)), not_active, distance, inactive))
    record = records[int(order[0])]

    size = record.package_size
    overfill = max(0.0, (size - target) / target * 100)
    underfill = max(0.0, (target - size) / target * 100)
    match_type = MATCH_OVERFILL if size > target else MATCH_UNDERFILL

    badges: List[str] = []
    if record.status == STATUS_INACTIVE:
        badges.append("Inactive")
    if overfill > OVERFILL_BADGE_THRESHOLD:
        badges.append(f"+{overfill:.0f}% Overfill")
    if underfill > 0:
        badges.append(f"-{underfill:.0f}% Short")

    if match_type == MATCH_OVERFILL:
        rationale = f"Nearest available: {format_size(size)} {record.unit} ({overfill:.1f}% overfill)"
    else:
        rationale = f"Partial fill: {format_size(size)} {record.unit} ({underfill:.1f}% short)"
    return RecommendationOption(
        primary_package_id=record.package_id,
        package_size=size,
        unit=record.unit,
        status=record.status,
        packs_used=(PackComposition(record.package_id, 1),),
        match_type=match_type,
        overfill_percent=overfill,
        underfill_percent=underfill,
        total_dispensed=size,
        badges=tuple(badges),
        rationale=rationale,
    )


def recommend_packs(
    target: float,
    unit: str,
    catalog: Sequence[PackageRecord],
    max_packs: int = DEFAULT_MAX_PACKS,
) -> Recommendation:
    if not target > 0:
        raise InvalidInputError("target", target)
    canonical = normalize_unit(unit)
    records = [r for r in catalog if units_match(r.unit, canonical)]
    logger.debug(
        "target %s %s, %d of %d packages in unit", target, canonical, len(records), len(catalog)
    )
    if not records:
        raise NoMatchingUnitError(canonical)

    exact = find_exact_match(target, records)
    if exact is not None:
        logger.debug("exact match %s", exact.primary_package_id)
        return Recommendation(recommended=replace(exact, score=score_option(exact, target)))

    scored = [
        replace(c, score=score_option(c, target))
        for c in find_multi_pack_candidates(target, records, max_packs)
    ]
    options: List[RecommendationOption] = []
    if scored:
        options.append(max(scored, key=lambda c: c.score))
    nearest = find_nearest_match(target, records)
    options.append(replace(nearest, score=score_option(nearest, target)))

    options.sort(key=lambda o: o.score, reverse=True)
    recommended = options[0]
    logger.debug(
        "recommended %s %s (score %.1f)",
        recommended.primary_package_id,
        recommended.match_type,
        recommended.score,
    )
    return Recommendation(recommended=recommended, alternatives=tuple(options[1:1 + MAX_ALTERNATIVES]))
