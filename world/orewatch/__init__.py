"""
OreWatch - x-ray mining detection for Evennia-style game worlds.

Scores a player's recorded block activity for signs of map-reading
cheats and optionally triggers enforcement.
"""

from world.orewatch.core import (
    Action,
    ActionType,
    AnalysisContext,
    HeuristicResult,
    SuspicionReport,
)
from world.orewatch.config import (
    OreWatchConfig,
    default_config,
    config_from_dict,
    load_config_from_yaml,
)
from world.orewatch.computation import (
    analyze_actions,
    analyze_identity,
)
from world.orewatch.enforcement import (
    EnforcementGuard,
    EnforcementTrigger,
    analyze_and_act,
)
from world.orewatch.heuristics import DETECTORS
from world.orewatch.persistence import InMemoryActionLog

__all__ = [
    # Core data structures
    "Action",
    "ActionType",
    "AnalysisContext",
    "HeuristicResult",
    "SuspicionReport",
    # Configuration
    "OreWatchConfig",
    "default_config",
    "config_from_dict",
    "load_config_from_yaml",
    # Analysis
    "DETECTORS",
    "analyze_actions",
    "analyze_identity",
    # Enforcement
    "EnforcementGuard",
    "EnforcementTrigger",
    "analyze_and_act",
    # Storage
    "InMemoryActionLog",
]
