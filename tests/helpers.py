"""
Test helpers for building action logs and configs.

Timestamps default to one second apart so logs stay strictly ordered.
"""

import random
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from world.orewatch.config import OreWatchConfig, default_config
from world.orewatch.core import Action, ActionType

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "orewatch_defaults.yaml"

PLAYER_ID = "player-1"
PLAYER_NAME = "Steve"


# =============================================================================
# ACTIONS
# =============================================================================

def make_act(
    action_type: ActionType,
    label: str,
    x: int = 0,
    y: int = 0,
    z: int = 0,
    t: int = 0,
    identity_id: str = PLAYER_ID,
    identity_name: str = PLAYER_NAME,
    world: str = "world",
) -> Action:
    """Build a single action."""
    return Action(
        identity_id=identity_id,
        identity_name=identity_name,
        action_type=action_type,
        label=label,
        world=world,
        x=x,
        y=y,
        z=z,
        timestamp=t,
    )


def brk(label: str, x: int = 0, y: int = 0, z: int = 0, t: int = 0, **kwargs) -> Action:
    return make_act(ActionType.BREAK, label, x, y, z, t, **kwargs)


def place(label: str, x: int = 0, y: int = 0, z: int = 0, t: int = 0, **kwargs) -> Action:
    return make_act(ActionType.PLACE, label, x, y, z, t, **kwargs)


def interact(label: str, x: int = 0, y: int = 0, z: int = 0, t: int = 0, **kwargs) -> Action:
    return make_act(ActionType.INTERACT, label, x, y, z, t, **kwargs)


def zone_entry(y: int = 10, t: int = 0, **kwargs) -> Action:
    return make_act(ActionType.ZONE_ENTRY, f"Y={y}", 0, y, 0, t, **kwargs)


def sequence(
    specs: Iterable[Tuple[ActionType, str, Tuple[int, int, int]]],
    start: int = 0,
    step: int = 1000
) -> List[Action]:
    """
    Build a log from (type, label, (x, y, z)) specs, stamping ordered times.
    """
    actions = []
    t = start
    for action_type, label, (x, y, z) in specs:
        actions.append(make_act(action_type, label, x, y, z, t))
        t += step
    return actions


def restamp(actions: Iterable[Action], start: int = 0, step: int = 1000) -> List[Action]:
    """Re-stamp actions with strictly increasing timestamps, keeping order."""
    return [replace(a, timestamp=start + i * step) for i, a in enumerate(actions)]


def stones(n: int, y: int = 64, label: str = "STONE") -> List[Action]:
    """n stone breaks spread along X so geometry is not degenerate."""
    return [brk(label, x=i, y=y, z=(i * 7) % 13) for i in range(n)]


def ore_ratio_log(total: int = 1000, n_stone: int = 600, n_ore: int = 50) -> List[Action]:
    """
    A log with the given stone and diamond counts, padded with dirt breaks.
    """
    actions = stones(n_stone)
    actions += [brk("DIAMOND_ORE", x=i, y=12, z=0) for i in range(n_ore)]
    actions += [brk("DIRT", x=i, y=70, z=0) for i in range(total - n_stone - n_ore)]
    return restamp(actions)


# =============================================================================
# CONFIG
# =============================================================================

def make_config(
    min_total: int = 0,
    min_stone: Optional[int] = None,
    weights: Optional[Dict[str, float]] = None,
    **threshold_overrides
) -> OreWatchConfig:
    """
    Default config with a lowered total-actions gate and optional overrides.

    Args:
        min_total: Minimum log size
        min_stone: Minimum stone breaks (default unchanged)
        weights: Replacement weights mapping
        **threshold_overrides: Any Thresholds field
    """
    base = default_config()
    thresholds = replace(base.thresholds, min_total_actions=min_total, **threshold_overrides)
    if min_stone is not None:
        thresholds = replace(thresholds, min_stone_actions=min_stone)
    config = replace(base, thresholds=thresholds)
    if weights is not None:
        config = replace(config, weights=weights)
    return config


def only_weight(key: str, weight: float = 1.0, **kwargs) -> OreWatchConfig:
    """Config where a single detector carries all the weight."""
    return make_config(weights={key: weight}, **kwargs)


# =============================================================================
# RANDOM LOGS
# =============================================================================

FUZZ_LABELS = [
    "STONE", "DEEPSLATE", "DIAMOND_ORE", "EMERALD_ORE", "COAL_ORE", "IRON_ORE", "TORCH", "CHEST", "DIRT",
]


def random_log(rng: random.Random, n: int, identity_id: str = "fuzz") -> List[Action]:
    """n random actions with non-decreasing timestamps."""
    actions = []
    t = 0
    for _ in range(n):
        t += rng.randint(0, 5000)
        actions.append(Action(
            identity_id=identity_id,
            identity_name="Fuzz",
            action_type=rng.choice(list(ActionType)),
            label=rng.choice(FUZZ_LABELS),
            world="world",
            x=rng.randint(-50, 50),
            y=rng.randint(-64, 100),
            z=rng.randint(-50, 50),
            timestamp=t,
        ))
    return actions
