"""Advisory messages for a pack recommendation."""

from __future__ import annotations

from typing import List, Sequence

from dosematch_types import (
    MATCH_EXACT,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    DispensingWarning,
    PackageRecord,
    Recommendation,
)

HIGH_OVERFILL_WARNING = 20.0


def generate_warnings(
    recommendation: Recommendation, catalog: Sequence[PackageRecord]
) -> List[DispensingWarning]:
    option = recommendation.recommended
    warnings: List[DispensingWarning] = []

    if option.status == STATUS_INACTIVE:
        warnings.append(
            DispensingWarning(
                code="INACTIVE_PACKAGE_RECOMMENDED",
                message=(
                    f"Recommended package {option.primary_package_id} is marked INACTIVE. "
                    "Verify product availability before dispensing."
                ),
                severity="warning",
            )
        )

    inactive_count = sum(1 for r in catalog if r.status == STATUS_INACTIVE)
    if inactive_count and option.status == STATUS_ACTIVE:
        warnings.append(
            DispensingWarning(
                code="INACTIVE_PACKAGES_PRESENT",
                message=(
                    f"{inactive_count} inactive package(s) found in the catalog. "
                    "Showing active alternatives when available."
                ),
                severity="info",
            )
        )

    if option.match_type != MATCH_EXACT:
        warnings.append(
            DispensingWarning(
                code="NO_EXACT_MATCH",
                message=(
                    "No exact package size match found. Recommendation uses "
                    f"{option.match_type.lower().replace('_', '-')} strategy."
                ),
                severity="info",
            )
        )

    if option.overfill_percent > HIGH_OVERFILL_WARNING:
        target = option.total_dispensed / (1 + option.overfill_percent / 100)
        warnings.append(
            DispensingWarning(
                code="HIGH_OVERFILL",
                message=(
                    f"Recommended package results in {option.overfill_percent:.1f}% overfill "
                    f"({option.total_dispensed:g} units vs. {target:g} target). "
                    "Consider splitting the prescription if appropriate."
                ),
                severity="warning",
            )
        )

    if option.underfill_percent > 0:
        target = option.total_dispensed / (1 - option.underfill_percent / 100)
        warnings.append(
            DispensingWarning(
                code="PARTIAL_FILL",
                message=(
                    f"Recommended package is {option.underfill_percent:.1f}% short of the target "
                    f"quantity ({option.total_dispensed:g} units vs. {target:g} target). "
                    "Patient may need a refill sooner."
                ),
                severity="warning",
            )
        )

    return warnings
