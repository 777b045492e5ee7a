"""
Core data structures for the ore-watch system.

Actions are produced by the capture layer and never mutated afterwards.
Everything derived from them (context, results, reports) lives for a single
analysis call.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class ActionType(Enum):
    """Kinds of recorded player actions."""
    BREAK = "BREAK"
    PLACE = "PLACE"
    INTERACT = "INTERACT"
    ZONE_ENTRY = "ZONE_ENTRY"


@dataclass(frozen=True)
class Action:
    """
    A single recorded player action.

    Logs are ordered by timestamp (milliseconds since epoch), oldest first.
    """
    identity_id: str
    identity_name: str
    action_type: ActionType
    label: str                # Material name, or a marker like "Y=12"
    world: str
    x: int
    y: int
    z: int
    timestamp: int


@dataclass(frozen=True)
class HeuristicResult:
    """One detector's partial score and its evidence line."""
    key: str
    score: float              # 0.0–100.0
    explanation: str


@dataclass(frozen=True)
class AnalysisContext:
    """
    Filtered views of one identity's log, built once per analysis run.

    find_indices[i] is the position of valuable_finds[i] inside break_actions,
    so preceding-path windows are plain slices.
    """
    all_actions: Tuple[Action, ...]
    break_actions: Tuple[Action, ...]
    valuable_finds: Tuple[Action, ...]
    high_value_ores: FrozenSet[str]
    find_indices: Tuple[int, ...] = ()


@dataclass(frozen=True)
class SuspicionReport:
    """
    Aggregate output of an analysis run.

    details holds one explanation per detector, in registration order.
    The insufficient-data report carries a single message and no results.
    """
    identity_id: str
    identity_name: str
    overall_score: float
    details: Tuple[str, ...]
    results: Tuple[HeuristicResult, ...] = field(default_factory=tuple)
    insufficient_data: bool = False

    def result_for(self, key: str) -> Optional[HeuristicResult]:
        """Look up a detector result by key."""
        for result in self.results:
            if result.key == key:
                return result
        return None
