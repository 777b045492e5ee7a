"""
Validation for ore-watch configuration entries.

Configuration errors are never fatal to an analysis run: a bad entry is
dropped, a warning is logged, and the remaining entries are used.

Ensures:
1. Suspicious Y-level bands parse as "y > LOW && y < HIGH"
2. Material labels look like game material names
3. Weights and thresholds are finite numbers
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# Game material names: upper-case words joined by underscores, e.g. DEEPSLATE_DIAMOND_ORE
MATERIAL_LABEL_PATTERN = re.compile(r"^[A-Z0-9]+(?:_[A-Z0-9]+)*$")

# Detector keys the aggregator knows about. Weights for anything else are dropped.
KNOWN_DETECTOR_KEYS: Set[str] = {
    "high-value-ore-ratio",
    "anomalous-mining",
    "y-level-analysis",
    "tunneling-pattern",
    "mining-purity",
    "path-efficiency",
    "torch-usage",
    "time-distance",
    "initial-discovery",
}


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when a single configuration entry cannot be used."""
    pass


class InvalidYRangeError(ConfigValidationError):
    """Raised when a suspicious Y-level band cannot be parsed."""
    pass


class InvalidMaterialError(ConfigValidationError):
    """Raised when a material label is not a valid material name."""
    pass


# =============================================================================
# Y-LEVEL BANDS
# =============================================================================

def parse_y_range(expression: str) -> Tuple[int, int]:
    """
    Parse a band expression into inclusive integer bounds.

    "y > -64 && y < 16" matches -63..15, so it returns (-63, 15).

    Args:
        expression: Band expression from configuration

    Returns:
        (low, high) inclusive bounds

    Raises:
        InvalidYRangeError: If either bound is missing or not an integer,
            or the band is empty
    """
    if not isinstance(expression, str):
        raise InvalidYRangeError(f"Y-level band must be a string, got {expression!r}")

    lower: Optional[int] = None
    upper: Optional[int] = None
    for part in expression.split("&&"):
        part = part.strip()
        try:
            if ">" in part:
                lower = int(part.split(">", 1)[1].strip())
            elif "<" in part:
                upper = int(part.split("<", 1)[1].strip())
        except ValueError:
            raise InvalidYRangeError(f"Invalid Y-level range format: {expression!r}")

    if lower is None or upper is None:
        raise InvalidYRangeError(f"Invalid Y-level range format: {expression!r}")

    low, high = lower + 1, upper - 1
    if low > high:
        raise InvalidYRangeError(f"Y-level range is empty: {expression!r}")
    return low, high


def parse_y_ranges(expressions: Iterable[str]) -> Tuple[Tuple[int, int], ...]:
    """
    Parse every band, skipping malformed ones with a warning.

    Args:
        expressions: Band expressions from configuration

    Returns:
        Tuple of (low, high) inclusive bounds, in configuration order
    """
    ranges: List[Tuple[int, int]] = []
    for expression in expressions:
        try:
            ranges.append(parse_y_range(expression))
        except InvalidYRangeError as e:
            logger.warning("Skipping suspicious Y-level band: %s", e)
    return tuple(ranges)


def y_in_ranges(y: int, ranges: Iterable[Tuple[int, int]]) -> bool:
    """Check whether a Y coordinate falls inside any band."""
    return any(low <= y <= high for low, high in ranges)


# =============================================================================
# MATERIAL LABELS
# =============================================================================

def validate_material(label: str, list_name: str) -> str:
    """
    Validate and normalize a single material label.

    Args:
        label: Raw label from configuration
        list_name: Name of the list it came from (for error messages)

    Returns:
        Upper-cased label

    Raises:
        InvalidMaterialError: If the label is not a material name
    """
    if not isinstance(label, str):
        raise InvalidMaterialError(f"{list_name}: material must be a string, got {label!r}")

    normalized = label.strip().upper()
    if not MATERIAL_LABEL_PATTERN.match(normalized):
        raise InvalidMaterialError(f"{list_name}: invalid material name {label!r}")
    return normalized


def validate_materials(labels: Iterable[str], list_name: str) -> frozenset:
    """
    Validate a material list, skipping bad labels with a warning.

    Args:
        labels: Raw labels from configuration
        list_name: Name of the list (for log messages)

    Returns:
        Frozen set of normalized labels
    """
    if not isinstance(labels, (list, tuple, set, frozenset)):
        logger.warning("Skipping material list %s: expected a list, got %r", list_name, labels)
        return frozenset()

    valid = set()
    for label in labels:
        try:
            valid.add(validate_material(label, list_name))
        except InvalidMaterialError as e:
            logger.warning("Skipping material: %s", e)
    return frozenset(valid)


# =============================================================================
# NUMBERS
# =============================================================================

def coerce_number(value, name: str) -> float:
    """
    Convert a configured number to float.

    Raises:
        ConfigValidationError: If value is not a finite number
    """
    if isinstance(value, bool):
        raise ConfigValidationError(f"{name}: expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name}: expected a number, got {value!r}")
    if not math.isfinite(number):
        raise ConfigValidationError(f"{name}: expected a finite number, got {value!r}")
    return number


def validate_weights(weights: Dict[str, object]) -> Dict[str, float]:
    """
    Validate detector weights.

    Unknown detector keys and non-numeric weights are dropped with a warning.

    Args:
        weights: Mapping of detector key -> weight

    Returns:
        Clean mapping of detector key -> float weight
    """
    if not isinstance(weights, dict):
        logger.warning("Skipping weights: expected a mapping, got %r", weights)
        return {}

    clean: Dict[str, float] = {}
    for key, value in weights.items():
        if key not in KNOWN_DETECTOR_KEYS:
            logger.warning("Skipping weight for unknown detector %r", key)
            continue
        try:
            clean[key] = coerce_number(value, f"weights.{key}")
        except ConfigValidationError as e:
            logger.warning("Skipping weight: %s", e)
    return clean
