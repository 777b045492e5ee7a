"""
Heuristic detectors for x-ray style mining.

Each detector is a pure function (AnalysisContext, OreWatchConfig) ->
HeuristicResult with a score in [0, 100]. A detector that lacks enough
samples returns 0 with an explanation; that is an outcome, not an error.

DETECTORS fixes the registration order used by the aggregator and in
report details.
"""

import math
from typing import Callable, List, Optional, Sequence, Tuple

from world.orewatch.config import OreWatchConfig
from world.orewatch.context import (
    has_label,
    is_action_type,
    position_of,
    restrict_context,
    timestamp_of,
    y_of,
)
from world.orewatch.core import Action, ActionType, AnalysisContext, HeuristicResult
from world.orewatch.validation import y_in_ranges

Detector = Callable[[AnalysisContext, OreWatchConfig], HeuristicResult]


# =============================================================================
# HELPERS
# =============================================================================

def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a score into [low, high]. NaN clamps to low."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def get_distance(a: Action, b: Action) -> Optional[float]:
    """Euclidean distance between two actions, or None if either position is bad."""
    pa = position_of(a)
    pb = position_of(b)
    if pa is None or pb is None:
        return None
    return math.sqrt(sum((p - q) ** 2 for p, q in zip(pa, pb)))


def calculate_variance(data: Sequence[float]) -> float:
    """
    Population variance.

    Fewer than two samples have no spread, so they return 0.0.
    """
    if len(data) < 2:
        return 0.0
    mean = sum(data) / len(data)
    return sum((value - mean) ** 2 for value in data) / len(data)


def get_preceding_path(
    break_actions: Sequence[Action],
    find_index: int,
    window: int
) -> Sequence[Action]:
    """
    The `window` break actions immediately before a find.

    Returns an empty sequence when fewer than `window` breaks precede it.
    """
    if window <= 0 or find_index < window:
        return ()
    return break_actions[find_index - window:find_index]


def _finds_by_time(ctx: AnalysisContext) -> List[Tuple[int, Action]]:
    """Valuable finds with usable timestamps, oldest first."""
    timed = [(timestamp_of(find), find) for find in ctx.valuable_finds]
    timed = [(t, find) for t, find in timed if t is not None]
    timed.sort(key=lambda pair: pair[0])
    return timed


def _stone_count(ctx: AnalysisContext, config: OreWatchConfig) -> int:
    stones = config.ore_lists.stones
    return sum(1 for action in ctx.break_actions if has_label(action, stones))


# =============================================================================
# DETECTORS
# =============================================================================

def calculate_ore_to_stone_ratio(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Valuable finds per stone block broken.

    Score = (ratio - threshold) * scale, when ratio exceeds the threshold.
    """
    key = "high-value-ore-ratio"
    stones_mined = _stone_count(ctx, config)
    if stones_mined < config.thresholds.min_stone_actions or stones_mined == 0:
        return HeuristicResult(key, 0.0, "[High-Value Ore Ratio] Not enough stone blocks mined.")

    ores_mined = len(ctx.valuable_finds)
    ratio = ores_mined / stones_mined
    threshold = config.thresholds.high_value_ratio

    score = 0.0
    if ratio > threshold:
        score = clamp_score((ratio - threshold) * config.scales.high_value_ore_ratio)

    return HeuristicResult(
        key,
        score,
        "[High-Value Ore Ratio | Score: %.1f] Mined %d high-value ores vs %d common blocks. (Ratio: %.4f)"
        % (score, ores_mined, stones_mined, ratio),
    )


def analyze_anomalous_mining(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Per-family common ore ratio against stone.

    Reports the worst family.
    """
    key = "anomalous-mining"
    stones_mined = _stone_count(ctx, config)
    if stones_mined < config.thresholds.min_stone_actions or stones_mined == 0:
        return HeuristicResult(key, 0.0, "[Anomalous Mining] Not enough stone blocks mined.")

    max_score = 0.0
    detail = ""
    for family, members in sorted(config.ore_lists.common.items()):
        family_mined = sum(1 for action in ctx.break_actions if has_label(action, members))
        ratio = family_mined / stones_mined
        threshold = config.common_ore_ratio_threshold(family)

        score = 0.0
        if ratio > threshold:
            score = clamp_score((ratio - threshold) * config.scales.anomalous_mining)

        if score > max_score:
            max_score = score
            detail = "(Target: %s, Ratio: %.4f)" % (family, ratio)

    return HeuristicResult(
        key,
        max_score,
        ("[Anomalous Mining | Score: %.1f] Checked common ore ratios. %s" % (max_score, detail)).rstrip(),
    )


def analyze_y_level_distribution(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Concentration of mining inside suspicious Y bands.

    Blends a concentration score with the ore ratio detector re-run on the
    in-band breaks only.
    """
    key = "y-level-analysis"
    total_breaks = len(ctx.break_actions)
    if total_breaks < 1:
        return HeuristicResult(key, 0.0, "[Y-Level Analysis] No break actions found.")

    ranges = config.thresholds.suspicious_y_ranges
    in_band = []
    for action in ctx.break_actions:
        y = y_of(action)
        if y is not None and y_in_ranges(y, ranges):
            in_band.append(action)

    concentration_ratio = len(in_band) / total_breaks
    concentration_threshold = config.thresholds.y_level_concentration_ratio
    concentration_score = 0.0
    if concentration_ratio > concentration_threshold:
        concentration_score = clamp_score(
            (concentration_ratio - concentration_threshold) * config.scales.y_level_concentration
        )

    zone_ore_score = calculate_ore_to_stone_ratio(restrict_context(ctx, in_band), config).score

    scales = config.scales
    final_score = clamp_score(
        concentration_score * scales.y_level_concentration_share
        + zone_ore_score * scales.y_level_zone_ore_share
    )
    return HeuristicResult(
        key,
        final_score,
        "[Y-Level Analysis | Score: %.1f] %.2f%% of mining at suspicious Y-levels (sub-score: %.1f)."
        % (final_score, concentration_ratio * 100, zone_ore_score),
    )


def analyze_tunneling_patterns(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Straight tunnels leading to valuable finds.

    A preceding window is a straight tunnel when two of its three axes barely
    vary: vertical shafts and axis-aligned drives.
    """
    key = "tunneling-pattern"
    if len(ctx.valuable_finds) < 2:
        return HeuristicResult(key, 0.0, "[Tunneling | Score: 0.0] Not enough valuable ore finds.")

    threshold = config.thresholds.tunnel_variance
    window = config.thresholds.tunnel_window
    suspicious_tunnels = 0

    for find_index in ctx.find_indices:
        path = get_preceding_path(ctx.break_actions, find_index, window)
        positions = [p for p in (position_of(a) for a in path) if p is not None]
        if len(positions) < 2:
            continue

        x_var, y_var, z_var = (calculate_variance([p[axis] for p in positions]) for axis in range(3))
        if ((x_var < threshold and z_var < threshold)        # vertical shaft
                or (x_var < threshold and y_var < threshold)  # straight along Z
                or (y_var < threshold and z_var < threshold)):  # straight along X
            suspicious_tunnels += 1

    score = clamp_score(suspicious_tunnels / len(ctx.valuable_finds) * config.scales.tunneling)
    return HeuristicResult(
        key,
        score,
        "[Tunneling | Score: %.1f] Detected %d straight/vertical tunnel(s)." % (score, suspicious_tunnels),
    )


def analyze_mining_purity(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Paths to valuable finds that ignore everything else on the way.

    A window is flagged when nearly all of it is non-ore, non-ignorable
    blocks and the player opened nothing (chests, bookshelves) on the way.
    """
    key = "mining-purity"
    if not ctx.valuable_finds:
        return HeuristicResult(key, 0.0, "[Mining Purity | Score: 0.0] No high-value ores found.")

    purity = config.thresholds.mining_purity
    common_ores = config.ore_lists.common_members
    ignorable = config.ore_lists.ignorable_interactions
    interaction_times = [
        t for t in (timestamp_of(a) for a in ctx.all_actions if is_action_type(a, ActionType.INTERACT))
        if t is not None
    ]
    suspicious_paths = 0

    for find, find_index in zip(ctx.valuable_finds, ctx.find_indices):
        path = get_preceding_path(ctx.break_actions, find_index, purity.window)
        if not path:
            continue

        start = timestamp_of(path[0])
        end = timestamp_of(find)
        if start is None or end is None:
            continue

        pure_blocks = sum(
            1 for action in path
            if isinstance(getattr(action, "label", None), str)
            and not has_label(action, common_ores)
            and not has_label(action, ignorable)
        )
        if pure_blocks / len(path) < purity.suspicious_ratio:
            continue

        if not any(start <= t < end for t in interaction_times):
            suspicious_paths += 1

    score = clamp_score(suspicious_paths / len(ctx.valuable_finds) * config.scales.mining_purity)
    return HeuristicResult(
        key,
        score,
        "[Mining Purity | Score: %.1f] Detected %d case(s) of ignoring interactions." % (score, suspicious_paths),
    )


def analyze_path_efficiency(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    How close travel between finds is to a straight line.

    Path distance follows the break actions between consecutive finds.
    A ratio of 1.0 (beeline) scores 100; the suspicious ratio and above score 0.
    """
    key = "path-efficiency"
    if len(ctx.valuable_finds) < 3:
        return HeuristicResult(key, 0.0, "[Path Efficiency | Score: 0.0] Not enough finds for analysis.")

    timed_breaks = [(timestamp_of(a), a) for a in ctx.break_actions]
    timed_breaks = [(t, a) for t, a in timed_breaks if t is not None]
    finds = _finds_by_time(ctx)

    total_path = 0.0
    total_straight = 0.0
    for (t1, find1), (t2, find2) in zip(finds, finds[1:]):
        straight = get_distance(find1, find2)
        if straight is None:
            continue
        total_straight += straight

        segment = [a for t, a in timed_breaks if t1 < t <= t2]
        for a, b in zip(segment, segment[1:]):
            step = get_distance(a, b)
            if step is not None:
                total_path += step

    if total_straight < 1:
        return HeuristicResult(key, 0.0, "[Path Efficiency | Score: 0.0] Path distance is too short.")

    efficiency_ratio = total_path / total_straight
    suspicious_ratio = config.thresholds.path_efficiency_ratio
    span = suspicious_ratio - 1.0

    score = 0.0
    if efficiency_ratio < suspicious_ratio and span > 0:
        score = clamp_score((1.0 - (efficiency_ratio - 1.0) / span) * 100)

    return HeuristicResult(
        key,
        score,
        "[Path Efficiency | Score: %.1f] Path efficiency ratio: %.2f" % (score, efficiency_ratio),
    )


def analyze_torch_usage(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """
    Blocks broken per light source placed below a Y cutoff.

    Mining in the dark with no torches means the player can see without them.
    """
    key = "torch-usage"
    torch = config.thresholds.torch_usage
    y_limit = torch.check_below_y
    light_sources = config.ore_lists.light_sources

    break_count = 0
    torch_count = 0
    for action in ctx.all_actions:
        y = y_of(action)
        if y is None or y >= y_limit:
            continue
        if is_action_type(action, ActionType.BREAK):
            break_count += 1
        elif is_action_type(action, ActionType.PLACE) and has_label(action, light_sources):
            torch_count += 1

    if break_count < torch.min_blocks or break_count == 0:
        return HeuristicResult(
            key, 0.0, "[Torch Usage | Score: 0.0] Not enough blocks broken below Y=%d." % y_limit
        )

    ratio = break_count / (torch_count + 1)
    suspicious_ratio = torch.suspicious_ratio

    score = 0.0
    if suspicious_ratio > 0 and ratio > suspicious_ratio:
        score = clamp_score((ratio / suspicious_ratio - 1.0) * 100)

    return HeuristicResult(
        key,
        score,
        "[Torch Usage | Score: %.1f] Broke %.0f blocks per torch placed below Y=%d." % (score, ratio, y_limit),
    )


def analyze_time_and_distance(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """Implausibly fast travel between consecutive valuable finds."""
    key = "time-distance"
    if len(ctx.valuable_finds) < 2:
        return HeuristicResult(key, 0.0, "[Time/Distance | Score: 0.0] Not enough valuable finds.")

    thresholds = config.thresholds
    finds = _finds_by_time(ctx)
    suspicious_finds = 0

    for (t1, find1), (t2, find2) in zip(finds, finds[1:]):
        distance = get_distance(find1, find2)
        if distance is None or distance < thresholds.min_travel_distance:
            continue
        seconds = (t2 - t1) / 1000.0
        if seconds < thresholds.min_travel_seconds or seconds <= 0:
            continue
        if distance / seconds > thresholds.suspicious_speed:
            suspicious_finds += 1

    score = clamp_score(suspicious_finds / len(ctx.valuable_finds) * config.scales.time_distance)
    return HeuristicResult(
        key,
        score,
        "[Time/Distance | Score: %.1f] Detected %d suspiciously fast travel(s)." % (score, suspicious_finds),
    )


def analyze_initial_discovery_time(ctx: AnalysisContext, config: OreWatchConfig) -> HeuristicResult:
    """Time from first entering a suspicious zone to the first valuable find."""
    key = "initial-discovery"
    entry_time = None
    for action in ctx.all_actions:
        if is_action_type(action, ActionType.ZONE_ENTRY):
            entry_time = timestamp_of(action)
            if entry_time is not None:
                break
    if entry_time is None:
        return HeuristicResult(
            key, 0.0, "[Initial Discovery | Score: 0.0] Player has not entered a suspicious zone."
        )

    find_time = None
    for t, _ in _finds_by_time(ctx):
        if t > entry_time:
            find_time = t
            break
    if find_time is None:
        return HeuristicResult(
            key, 0.0, "[Initial Discovery | Score: 0.0] No high-value ores found after entering zone."
        )

    seconds = (find_time - entry_time) / 1000.0
    suspicious_time = config.thresholds.initial_discovery_seconds

    score = 0.0
    if suspicious_time > 0 and seconds < suspicious_time:
        score = clamp_score((1.0 - seconds / suspicious_time) * 100)

    return HeuristicResult(
        key,
        score,
        "[Initial Discovery | Score: %.1f] First high-value ore found in %.1f seconds." % (score, seconds),
    )


# =============================================================================
# REGISTRY
# =============================================================================

# Registration order is report order.
DETECTORS: Tuple[Tuple[str, Detector], ...] = (
    ("high-value-ore-ratio", calculate_ore_to_stone_ratio),
    ("anomalous-mining", analyze_anomalous_mining),
    ("y-level-analysis", analyze_y_level_distribution),
    ("tunneling-pattern", analyze_tunneling_patterns),
    ("mining-purity", analyze_mining_purity),
    ("path-efficiency", analyze_path_efficiency),
    ("torch-usage", analyze_torch_usage),
    ("time-distance", analyze_time_and_distance),
    ("initial-discovery", analyze_initial_discovery_time),
)
