"""Shared value types, constants and errors for dosematch."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, Optional, Tuple

CANONICAL_UNITS: Tuple[str, ...] = ("EA", "mL", "g", "U", "actuations")

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE = "INACTIVE"
STATUS_UNKNOWN = "UNKNOWN"
PACKAGE_STATUSES: Tuple[str, ...] = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_UNKNOWN)
STATUS_RANK: Dict[str, int] = {STATUS_ACTIVE: 0, STATUS_UNKNOWN: 1, STATUS_INACTIVE: 2}

MATCH_EXACT = "EXACT"
MATCH_MULTI_PACK = "MULTI_PACK"
MATCH_OVERFILL = "OVERFILL"
MATCH_UNDERFILL = "UNDERFILL"

ORIGIN_RULES = "rules"
ORIGIN_FALLBACK = "fallback"

DURATION_UNITS: Tuple[str, ...] = ("days", "weeks", "months")


class DosematchError(ValueError):
    pass


class InvalidInputError(DosematchError):
    def __init__(self, field_name: str, value: object = None) -> None:
        self.field = field_name
        self.value = value
        super().__init__(f"Invalid {field_name}: {value!r}. Must be positive.")


class LimitExceededError(DosematchError):
    def __init__(self, total: float, limit: int) -> None:
        self.total = total
        self.limit = limit
        super().__init__(
            f"Calculated quantity ({total}) exceeds safety limit of {limit:,} units."
        )


class NoMatchingUnitError(DosematchError):
    def __init__(self, unit: str) -> None:
        self.unit = unit
        super().__init__(f"No packages found matching unit: {unit}")


@dataclass(frozen=True)
class Duration:
    value: int
    unit: str = "days"


@dataclass(frozen=True)
class DosingInstruction:
    amount_per_dose: float
    unit: str
    frequency_per_day: int
    days_supply: int
    confidence: float = 0.0
    origin: str = ORIGIN_RULES
    amount_max: Optional[float] = None
    frequency_max: Optional[int] = None
    route: Optional[str] = None
    duration: Optional[Duration] = None
    indication: Optional[str] = None
    is_as_needed: bool = False
    strength: Optional[float] = None
    strength_unit: Optional[str] = None
    rationale: Optional[str] = None

    @property
    def max_daily_dose(self) -> float:
        amount = self.amount_max if self.amount_max is not None else self.amount_per_dose
        frequency = (
            self.frequency_max if self.frequency_max is not None else self.frequency_per_day
        )
        return amount * frequency

    def to_dict(self) -> Dict[str, object]:
        out = asdict(self)
        out["max_daily_dose"] = self.max_daily_dose
        return out


@dataclass(frozen=True)
class PackageRecord:
    package_id: str
    package_size: float
    unit: str
    status: str = STATUS_UNKNOWN
    labeler: Optional[str] = None
    product_name: Optional[str] = None


@dataclass(frozen=True)
class PackComposition:
    package_id: str
    count: int


@dataclass(frozen=True)
class RecommendationOption:
    primary_package_id: str
    package_size: float
    unit: str
    status: str
    packs_used: Tuple[PackComposition, ...]
    match_type: str
    overfill_percent: float = 0.0
    underfill_percent: float = 0.0
    total_dispensed: float = 0.0
    badges: Tuple[str, ...] = field(default_factory=tuple)
    rationale: str = ""
    score: float = 0.0

    @property
    def pack_count(self) -> int:
        return sum(p.count for p in self.packs_used)


@dataclass(frozen=True)
class Recommendation:
    recommended: RecommendationOption
    alternatives: Tuple[RecommendationOption, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class DispensingWarning:
    code: str
    message: str
    severity: str
