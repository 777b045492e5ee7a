#!/usr/bin/env python3
"""Mining sim: one honest branch miner + one x-ray miner + OreWatch.

This is a lightweight, non-server simulation that demonstrates:
- action capture (breaks, torch placements, chest opens, zone entries)
- periodic analysis on the worker pool
- enforcement commands marshalled back to the "main thread"
- the admin check/stats output for both players

Run:
  source .venv/bin/activate
  python scripts/mining_sim.py [seed]

Notes:
- World generation is faked: each broken block rolls its material.
- Scores depend on the seed; the x-ray miner should land well above the
  honest one on any seed.
"""

from __future__ import annotations

import logging
import random
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

# Ensure repo root is on sys.path when running as a script
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from world.orewatch.admin_commands import cmd_orewatch_check, cmd_orewatch_stats
from world.orewatch.capture import ZoneTracker, make_action
from world.orewatch.config import OreWatchConfig, load_config_from_yaml
from world.orewatch.core import Action, ActionType, SuspicionReport
from world.orewatch.enforcement import EnforcementTrigger
from world.orewatch.persistence import InMemoryActionLog
from world.orewatch.scheduler import AnalysisScheduler


# ----------------------------
# Model
# ----------------------------

# Rough per-block odds at diamond depth
ORE_ODDS: List[Tuple[str, float]] = [
    ("DEEPSLATE_COAL_ORE", 0.020),
    ("DEEPSLATE_IRON_ORE", 0.015),
    ("DEEPSLATE_COPPER_ORE", 0.010),
    ("DEEPSLATE_REDSTONE_ORE", 0.012),
    ("DEEPSLATE_GOLD_ORE", 0.004),
    ("DEEPSLATE_LAPIS_ORE", 0.003),
    ("DEEPSLATE_DIAMOND_ORE", 0.002),
    ("TUFF", 0.030),
]


@dataclass
class Miner:
    identity_id: str
    name: str
    x: int = 0
    y: int = 64
    z: int = 0
    clock_ms: int = 1_700_000_000_000
    actions: List[Action] = field(default_factory=list)

    def tick(self, rng: random.Random, low: int = 300, high: int = 900) -> int:
        self.clock_ms += rng.randint(low, high)
        return self.clock_ms

    def act(self, rng: random.Random, action_type: ActionType, label: str) -> Action:
        action = make_action(
            self.identity_id, self.name, action_type, label, "world",
            self.x, self.y, self.z, self.tick(rng),
        )
        self.actions.append(action)
        return action


def clamp(x: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, x))


def roll_material(rng: random.Random) -> str:
    r = rng.random()
    for label, odds in ORE_ODDS:
        r -= odds
        if r < 0:
            return label
    return "DEEPSLATE"


# ----------------------------
# Behaviours
# ----------------------------

def descend(miner: Miner, rng: random.Random, zones: ZoneTracker, target_y: int) -> None:
    """Staircase down to mining depth."""
    while miner.y > target_y:
        miner.y -= 1
        miner.x += 1
        miner.act(rng, ActionType.BREAK, "STONE" if miner.y > 0 else "DEEPSLATE")
        entry = zones.observe_move(miner.identity_id, miner.name, "world", miner.x, miner.y, miner.z, miner.clock_ms)
        if entry is not None:
            miner.actions.append(entry)


def branch_mine(miner: Miner, rng: random.Random, n_actions: int) -> None:
    """Honest miner: wandering branches, torches, stops at chests."""
    dx, dz = 1, 0
    since_torch = 0
    while len(miner.actions) < n_actions:
        if rng.random() < 0.08:
            dx, dz = rng.choice([(1, 0), (-1, 0), (0, 1), (0, -1)])
        miner.x += dx
        miner.z += dz
        miner.y = clamp(miner.y + rng.choice([0, 0, 0, 0, 1, -1]), -60, -20)

        miner.act(rng, ActionType.BREAK, roll_material(rng))
        since_torch += 1

        if since_torch >= rng.randint(8, 14):
            miner.act(rng, ActionType.PLACE, "TORCH")
            since_torch = 0
        if rng.random() < 0.004:
            miner.act(rng, ActionType.INTERACT, "CHEST")


def xray_mine(miner: Miner, rng: random.Random, n_actions: int) -> None:
    """X-ray miner: beelines from diamond to diamond in the dark."""
    while len(miner.actions) < n_actions:
        tx = miner.x + rng.randint(-12, 12)
        tz = miner.z + rng.randint(-12, 12)
        ty = clamp(miner.y + rng.randint(-2, 2), -62, -40)
        if (tx, ty, tz) == (miner.x, miner.y, miner.z):
            continue

        # Tunnel one axis at a time: X, then Z, then Y
        while (miner.x, miner.y, miner.z) != (tx, ty, tz):
            if miner.x != tx:
                miner.x += 1 if tx > miner.x else -1
            elif miner.z != tz:
                miner.z += 1 if tz > miner.z else -1
            else:
                miner.y += 1 if ty > miner.y else -1
            at_target = (miner.x, miner.y, miner.z) == (tx, ty, tz)
            miner.act(rng, ActionType.BREAK, "DEEPSLATE_DIAMOND_ORE" if at_target else "DEEPSLATE")


# ----------------------------
# Simulation
# ----------------------------

def print_report(report: SuspicionReport, config: OreWatchConfig) -> None:
    print()
    print(cmd_orewatch_check(report, config))


def simulate(seed: int = 42, n_actions: int = 1500) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    rng = random.Random(seed)

    config = load_config_from_yaml(project_root / "config" / "orewatch_defaults.yaml")
    store = InMemoryActionLog()
    zones = ZoneTracker(config.thresholds.suspicious_y_ranges)
    commands: List[str] = []
    trigger = EnforcementTrigger.from_config(commands.append, config)
    scheduler = AnalysisScheduler(store, config, trigger=trigger)

    print("=" * 72)
    print("MINING SIM: honest miner vs x-ray miner / OreWatch")
    print(f"seed={seed}  actions/player={n_actions}")
    print("=" * 72)

    honest = Miner("p-honest", "Honest_Hank")
    cheater = Miner("p-xray", "Xray_Xena")
    descend(honest, rng, zones, -50)
    descend(cheater, rng, zones, -58)
    branch_mine(honest, rng, n_actions)
    xray_mine(cheater, rng, n_actions)

    # Interleave both players' actions in time order, like a live server
    merged = sorted(honest.actions + cheater.actions, key=lambda a: a.timestamp)
    periodic: Dict[str, int] = {}
    for i, action in enumerate(merged):
        future = scheduler.record_action(action)
        if future is not None:
            periodic[action.identity_id] = periodic.get(action.identity_id, 0) + 1
            future.result()
        if i % 50 == 0:
            scheduler.run_pending()

    for miner in (honest, cheater):
        future = scheduler.request_analysis(
            miner.identity_id,
            callback=lambda report: print_report(report, config),
            enforce=False,
        )
        if future is not None:
            future.result()
    scheduler.run_pending()
    scheduler.shutdown()

    print()
    for miner in (honest, cheater):
        print(cmd_orewatch_stats(store, miner.identity_id))
        print(f"  Periodic analyses: {periodic.get(miner.identity_id, 0)}")
        print()

    print("Enforcement commands issued:")
    for command in commands or ["(none)"]:
        print(f"  {command}")
    return 0


if __name__ == "__main__":
    raise SystemExit(simulate(int(sys.argv[1]) if len(sys.argv) > 1 else 42))
