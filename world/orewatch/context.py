"""
Analysis context: filtered views of one identity's action log.

A context is derived once per analysis run and shared by every detector.
Record accessors here never raise on a malformed action; a bad field just
makes the record non-matching.
"""

import math
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from world.orewatch.config import OreWatchConfig
from world.orewatch.core import Action, ActionType, AnalysisContext


# =============================================================================
# RECORD ACCESSORS
# =============================================================================

# Game worlds end at the border; anything past it is a corrupt record
MAX_COORDINATE = 30_000_000


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_coordinate(value) -> bool:
    return _is_number(value) and abs(value) <= MAX_COORDINATE


def is_action_type(action: Action, action_type: ActionType) -> bool:
    """Check an action's kind without trusting the record."""
    return getattr(action, "action_type", None) is action_type


def has_label(action: Action, labels: FrozenSet[str]) -> bool:
    """Check whether an action's label is in a classification set."""
    label = getattr(action, "label", None)
    return isinstance(label, str) and label in labels


def position_of(action: Action) -> Optional[Tuple[float, float, float]]:
    """Get (x, y, z), or None if any coordinate is missing, not a number or out of bounds."""
    coords = (getattr(action, "x", None), getattr(action, "y", None), getattr(action, "z", None))
    if not all(_is_coordinate(c) for c in coords):
        return None
    return coords


def y_of(action: Action) -> Optional[float]:
    """Get the vertical coordinate, or None if it is not a usable coordinate."""
    y = getattr(action, "y", None)
    return y if _is_coordinate(y) else None


def timestamp_of(action: Action) -> Optional[int]:
    """Get the timestamp in milliseconds, or None if it is not a number."""
    timestamp = getattr(action, "timestamp", None)
    return timestamp if _is_number(timestamp) else None


# =============================================================================
# CONTEXT BUILDING
# =============================================================================

def derive_context(
    all_actions: Sequence[Action],
    break_actions: Sequence[Action],
    high_value_ores: FrozenSet[str],
) -> AnalysisContext:
    """
    Build a context from an already filtered break sequence.

    Valuable finds keep the break sequence's order; find_indices records
    where each one sits inside break_actions.

    Args:
        all_actions: Full log, oldest first
        break_actions: BREAK actions to analyze, oldest first
        high_value_ores: Labels that count as valuable finds

    Returns:
        AnalysisContext
    """
    finds: List[Action] = []
    indices: List[int] = []
    for index, action in enumerate(break_actions):
        if has_label(action, high_value_ores):
            finds.append(action)
            indices.append(index)

    return AnalysisContext(
        all_actions=tuple(all_actions),
        break_actions=tuple(break_actions),
        valuable_finds=tuple(finds),
        high_value_ores=high_value_ores,
        find_indices=tuple(indices),
    )


def restrict_context(ctx: AnalysisContext, break_actions: Iterable[Action]) -> AnalysisContext:
    """Re-derive a context over a subset of its break actions."""
    return derive_context(ctx.all_actions, tuple(break_actions), ctx.high_value_ores)


def build_context(actions: Sequence[Action], config: OreWatchConfig) -> Optional[AnalysisContext]:
    """
    Build the analysis context for one identity's log.

    This is the insufficient-data gate: when the log is shorter than the
    configured minimum, no context is built and no detector runs.

    Args:
        actions: Full log, ascending by timestamp (not re-sorted here)
        config: Configuration snapshot

    Returns:
        AnalysisContext, or None if there is not enough data
    """
    if len(actions) < config.thresholds.min_total_actions:
        return None

    breaks = [a for a in actions if is_action_type(a, ActionType.BREAK)]
    return derive_context(actions, breaks, config.ore_lists.high_value)
