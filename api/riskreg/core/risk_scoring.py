"""Risk level classification for inherent and residual assessments.

Implements:
- Exposure calculation (probability scale x impact scale)
- Exposure to risk level banding
- Normalization of free-text level labels found in imported data

Every consumer (assessment writes, risk matrix, analytics, custom reports,
PDF reports, seed data) classifies through this module.
"""
import enum
import logging
from typing import Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

SCALE_MIN = 1
SCALE_MAX = 5
SCALE_VALUES = tuple(range(SCALE_MIN, SCALE_MAX + 1))


class RiskLevel(str, enum.Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


# Lower bound (inclusive) of each band, checked from the top down
LEVEL_THRESHOLDS = (
    (20, RiskLevel.VERY_HIGH),
    (15, RiskLevel.HIGH),
    (10, RiskLevel.MODERATE),
    (5, RiskLevel.LOW),
)

# Ordinal rank, used for sorting and "at least HIGH" style comparisons
LEVEL_RANK: Dict[RiskLevel, int] = {
    RiskLevel.VERY_LOW: 1,
    RiskLevel.LOW: 2,
    RiskLevel.MODERATE: 3,
    RiskLevel.HIGH: 4,
    RiskLevel.VERY_HIGH: 5,
}

LEVEL_LABELS: Dict[RiskLevel, str] = {
    RiskLevel.VERY_LOW: "Very Low",
    RiskLevel.LOW: "Low",
    RiskLevel.MODERATE: "Moderate",
    RiskLevel.HIGH: "High",
    RiskLevel.VERY_HIGH: "Very High",
}

# Free-text labels seen in legacy spreadsheets and early seed data
_LEGACY_LABELS: Dict[str, RiskLevel] = {
    "very low": RiskLevel.VERY_LOW,
    "sangat rendah": RiskLevel.VERY_LOW,
    "low": RiskLevel.LOW,
    "rendah": RiskLevel.LOW,
    "moderate": RiskLevel.MODERATE,
    "medium": RiskLevel.MODERATE,
    "sedang": RiskLevel.MODERATE,
    "high": RiskLevel.HIGH,
    "tinggi": RiskLevel.HIGH,
    "very high": RiskLevel.VERY_HIGH,
    "sangat tinggi": RiskLevel.VERY_HIGH,
}

HIGH_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.VERY_HIGH})


class InvalidScaleValue(ValueError):
    """Raised when a probability or impact scale is outside 1..5."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be an integer between {SCALE_MIN} and {SCALE_MAX}, got {value!r}")


class RiskScore(NamedTuple):
    exposure: int
    level: RiskLevel


def validate_scale(field: str, value) -> int:
    """
    Check that a scale value is an integer in 1..5.

    Booleans are rejected even though ``bool`` subclasses ``int``.

    Raises:
        InvalidScaleValue: If the value is not an integer in range
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScaleValue(field, value)
    if value < SCALE_MIN or value > SCALE_MAX:
        raise InvalidScaleValue(field, value)
    return value


def classify_exposure(exposure: int) -> RiskLevel:
    """
    Map an exposure value to its risk level band.

    Args:
        exposure: probability x impact, 1..25

    Returns:
        VERY_HIGH (>=20), HIGH (>=15), MODERATE (>=10), LOW (>=5), else VERY_LOW
    """
    for lower_bound, level in LEVEL_THRESHOLDS:
        if exposure >= lower_bound:
            return level
    return RiskLevel.VERY_LOW


def score_risk(probability: int, impact: int) -> RiskScore:
    """
    Compute exposure and level for a probability/impact pair.

    Args:
        probability: Probability scale, integer 1..5
        impact: Impact scale, integer 1..5

    Returns:
        RiskScore(exposure, level)

    Raises:
        InvalidScaleValue: If either input is outside 1..5
    """
    probability = validate_scale("probability", probability)
    impact = validate_scale("impact", impact)
    exposure = probability * impact
    return RiskScore(exposure=exposure, level=classify_exposure(exposure))


def level_rank(level: Optional[str]) -> int:
    """Ordinal rank of a level code, 0 for unknown or missing."""
    if not level:
        return 0
    try:
        return LEVEL_RANK[RiskLevel(level)]
    except ValueError:
        return 0


def level_label(level: Optional[str]) -> str:
    """Human readable label for a level code."""
    if not level:
        return "N/A"
    try:
        return LEVEL_LABELS[RiskLevel(level)]
    except ValueError:
        return level


def normalize_level_label(label: Optional[str]) -> Optional[RiskLevel]:
    """
    Convert a stored level label into a RiskLevel.

    Accepts canonical codes ("VERY_HIGH") silently. Legacy free-text labels
    ("Very High", "Sedang") are mapped with a warning, since the stored label
    may disagree with the banding of the stored exposure.
    """
    if not label:
        return None
    candidate = label.strip()
    if candidate in RiskLevel.__members__:
        return RiskLevel[candidate]

    level = _LEGACY_LABELS.get(label.strip().lower())
    if level is None:
        logger.warning("Unrecognized risk level label %r", label)
        return None
    logger.warning("Normalized legacy risk level label %r to %s", label, level.value)
    return level
