"""Target quantity from parsed dosing: ceil(dose x frequency x days)."""

from __future__ import annotations

import logging
import math

from dosematch_types import DosematchError, DosingInstruction, InvalidInputError, LimitExceededError

logger = logging.getLogger(__name__)

MAX_TOTAL_UNITS = 1_000_000
# float products such as 0.1 * 3 * 10 are rounded before the ceiling
ROUNDING_DIGITS = 9


def compute_total_units(dosing: DosingInstruction) -> int:
    """Total units to dispense for ``dosing``.

    Examples: 1 tablet, 3x/day, 7 days -> 21; 5 mL, 4x/day, 14 days -> 280;
    1.5 tablets, 1x/day, 10 days -> 15.
    """
    if not dosing.amount_per_dose > 0:
        raise InvalidInputError("amount_per_dose", dosing.amount_per_dose)
    if not dosing.frequency_per_day > 0:
        raise InvalidInputError("frequency_per_day", dosing.frequency_per_day)
    if not dosing.days_supply > 0:
        raise InvalidInputError("days_supply", dosing.days_supply)

    raw = dosing.amount_per_dose * dosing.frequency_per_day * dosing.days_supply
    if not math.isfinite(raw):
        raise LimitExceededError(raw, MAX_TOTAL_UNITS)
    total = int(math.ceil(round(raw, ROUNDING_DIGITS)))
    if total > MAX_TOTAL_UNITS:
        raise LimitExceededError(total, MAX_TOTAL_UNITS)
    return total


def compute_total_units_or_zero(dosing: DosingInstruction) -> int:
    try:
        return compute_total_units(dosing)
    except DosematchError as exc:
        logger.debug("quantity rejected: %s", exc)
        return 0
