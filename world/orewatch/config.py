"""
Configuration for the ore-watch system.

All tunable parameters live here, not in code. A config is an immutable
snapshot: build one with default_config(), config_from_dict() or
load_config_from_yaml() and pass it into every analysis call.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Tuple, Union

import yaml

from world.orewatch.validation import (
    ConfigValidationError,
    coerce_number,
    parse_y_ranges,
    validate_materials,
    validate_weights,
)

logger = logging.getLogger(__name__)

# Ratio threshold for common-ore families with no explicit entry
DEFAULT_COMMON_ORE_RATIO = 0.1

PLAYER_PLACEHOLDER = "%player%"


@dataclass(frozen=True)
class OreLists:
    """Material classification sets."""
    high_value: FrozenSet[str]
    common: Dict[str, FrozenSet[str]]      # family name -> member labels
    stones: FrozenSet[str]
    ignorable_interactions: FrozenSet[str]
    light_sources: FrozenSet[str]

    @property
    def common_members(self) -> FrozenSet[str]:
        """Every label belonging to any common-ore family."""
        members = set()
        for labels in self.common.values():
            members.update(labels)
        return frozenset(members)


@dataclass(frozen=True)
class TorchUsageThresholds:
    """Light-source placement check below a Y cutoff."""
    check_below_y: int
    min_blocks: int
    suspicious_ratio: float


@dataclass(frozen=True)
class MiningPurityThresholds:
    """Window and ratio for the mining purity check."""
    window: int
    suspicious_ratio: float


@dataclass(frozen=True)
class Thresholds:
    """Per-detector thresholds and minimum sample sizes."""
    min_total_actions: int
    min_stone_actions: int
    high_value_ratio: float
    common_ore_ratios: Dict[str, float]    # upper-case family name -> ratio
    tunnel_variance: float
    tunnel_window: int
    suspicious_speed: float                # blocks per second
    min_travel_distance: float             # blocks
    min_travel_seconds: float
    y_level_concentration_ratio: float
    suspicious_y_ranges: Tuple[Tuple[int, int], ...]  # inclusive bounds
    torch_usage: TorchUsageThresholds
    mining_purity: MiningPurityThresholds
    initial_discovery_seconds: float
    path_efficiency_ratio: float
    suspicion_levels: Dict[str, float]


@dataclass(frozen=True)
class Scales:
    """
    Magnitude constants that stretch small ratio excesses onto 0–100.

    These have no derivation beyond empirical tuning; retune with care.
    """
    high_value_ore_ratio: float
    anomalous_mining: float
    y_level_concentration: float
    y_level_concentration_share: float
    y_level_zone_ore_share: float
    tunneling: float
    mining_purity: float
    time_distance: float


@dataclass(frozen=True)
class AutoPunishPolicy:
    """Automatic enforcement settings."""
    enabled: bool
    command: str                           # contains PLAYER_PLACEHOLDER
    threshold_level: str
    threshold_score: float
    cooldown_seconds: float                # 0 = no duplicate suppression


@dataclass(frozen=True)
class OreWatchConfig:
    """Complete ore-watch configuration."""
    weights: Dict[str, float]
    ore_lists: OreLists
    thresholds: Thresholds
    scales: Scales
    auto_punish: AutoPunishPolicy
    analysis_check_interval: int           # actions between periodic analyses

    def weight(self, key: str) -> float:
        """Weight for a detector key. Unweighted detectors contribute nothing."""
        return self.weights.get(key, 0.0)

    def common_ore_ratio_threshold(self, family: str) -> float:
        """Ratio threshold for a common-ore family."""
        return self.thresholds.common_ore_ratios.get(family.upper(), DEFAULT_COMMON_ORE_RATIO)


# Default configuration - matches config/orewatch_defaults.yaml
_DEFAULT_CONFIG = OreWatchConfig(
    weights={
        "high-value-ore-ratio": 0.25,
        "anomalous-mining": 0.1,
        "y-level-analysis": 0.1,
        "tunneling-pattern": 0.1,
        "mining-purity": 0.15,
        "path-efficiency": 0.1,
        "torch-usage": 0.05,
        "time-distance": 0.1,
        "initial-discovery": 0.05,
    },
    ore_lists=OreLists(
        high_value=frozenset({
            "DIAMOND_ORE", "DEEPSLATE_DIAMOND_ORE",
            "EMERALD_ORE", "DEEPSLATE_EMERALD_ORE",
            "ANCIENT_DEBRIS",
        }),
        common={
            "COAL": frozenset({"COAL_ORE", "DEEPSLATE_COAL_ORE"}),
            "IRON": frozenset({"IRON_ORE", "DEEPSLATE_IRON_ORE"}),
            "COPPER": frozenset({"COPPER_ORE", "DEEPSLATE_COPPER_ORE"}),
            "GOLD": frozenset({"GOLD_ORE", "DEEPSLATE_GOLD_ORE", "NETHER_GOLD_ORE"}),
            "REDSTONE": frozenset({"REDSTONE_ORE", "DEEPSLATE_REDSTONE_ORE"}),
            "LAPIS": frozenset({"LAPIS_ORE", "DEEPSLATE_LAPIS_ORE"}),
        },
        stones=frozenset({
            "STONE", "DEEPSLATE", "TUFF", "GRANITE", "DIORITE", "ANDESITE",
            "NETHERRACK", "BASALT", "BLACKSTONE",
        }),
        ignorable_interactions=frozenset({
            "CHEST", "SPAWNER", "RAIL", "COBWEB", "OAK_PLANKS", "OAK_FENCE",
            "BOOKSHELF", "MOSSY_COBBLESTONE",
        }),
        light_sources=frozenset({"TORCH", "SOUL_TORCH"}),
    ),
    thresholds=Thresholds(
        min_total_actions=500,
        min_stone_actions=100,
        high_value_ratio=0.02,
        common_ore_ratios={
            "COAL": 0.1,
            "IRON": 0.08,
            "COPPER": 0.1,
            "GOLD": 0.03,
            "REDSTONE": 0.05,
            "LAPIS": 0.03,
        },
        tunnel_variance=2.0,
        tunnel_window=50,
        suspicious_speed=5.0,
        min_travel_distance=10.0,
        min_travel_seconds=1.0,
        y_level_concentration_ratio=0.4,
        suspicious_y_ranges=((-63, 15),),
        torch_usage=TorchUsageThresholds(
            check_below_y=40,
            min_blocks=500,
            suspicious_ratio=200.0,
        ),
        mining_purity=MiningPurityThresholds(
            window=50,
            suspicious_ratio=0.95,
        ),
        initial_discovery_seconds=300.0,
        path_efficiency_ratio=1.5,
        suspicion_levels={"suspicious": 40.0, "dangerous": 70.0},
    ),
    scales=Scales(
        high_value_ore_ratio=5000.0,
        anomalous_mining=1000.0,
        y_level_concentration=200.0,
        y_level_concentration_share=0.4,
        y_level_zone_ore_share=0.6,
        tunneling=150.0,
        mining_purity=100.0,
        time_distance=100.0,
    ),
    auto_punish=AutoPunishPolicy(
        enabled=True,
        command="kick %player% [OreWatch] Suspicious activity detected.",
        threshold_level="dangerous",
        threshold_score=70.0,
        cooldown_seconds=0.0,
    ),
    analysis_check_interval=100,
)


def default_config() -> OreWatchConfig:
    """Get the built-in default configuration."""
    return _DEFAULT_CONFIG


def with_auto_punish(config: OreWatchConfig, enabled: bool) -> OreWatchConfig:
    """Return a copy of config with auto-punish switched on or off."""
    return replace(config, auto_punish=replace(config.auto_punish, enabled=enabled))


def suspicion_level(score: float, config: OreWatchConfig) -> str:
    """
    Map a score to a suspicion label.

    Returns:
        "dangerous", "suspicious" or "clean"
    """
    levels = config.thresholds.suspicion_levels
    if score >= levels.get("dangerous", 70.0):
        return "dangerous"
    if score >= levels.get("suspicious", 40.0):
        return "suspicious"
    return "clean"


# =============================================================================
# DICT / YAML LOADING
# =============================================================================

def _section(data: dict, key: str, path: str) -> dict:
    """Get a nested mapping, treating a missing or malformed section as empty."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring %s%s: expected a mapping, got %r", path, key, value)
        return {}
    return value


def _value(data: dict, key: str, default, path: str, cast: Callable = float):
    """Read one numeric setting, falling back to default on a bad entry."""
    if key not in data:
        return default
    try:
        return cast(coerce_number(data[key], f"{path}{key}"))
    except ConfigValidationError as e:
        logger.warning("Using default for %s%s: %s", path, key, e)
        return default


def _ratios(data: dict, defaults: Dict[str, float], path: str, normalize: Callable = str.upper) -> Dict[str, float]:
    """Read a name -> number mapping, normalizing the names."""
    ratios = dict(defaults)
    for name, value in data.items():
        try:
            ratios[normalize(str(name))] = coerce_number(value, f"{path}{name}")
        except ConfigValidationError as e:
            logger.warning("Skipping ratio: %s", e)
    return ratios


def _materials(data: dict, key: str, default: FrozenSet[str], path: str) -> FrozenSet[str]:
    if key not in data:
        return default
    return validate_materials(data[key], f"{path}{key}")


def _load_ore_lists(data: dict, defaults: OreLists) -> OreLists:
    path = "ore-lists."
    common = defaults.common
    if "common" in data:
        raw_common = _section(data, "common", path)
        common = {}
        for family, labels in raw_common.items():
            members = validate_materials(labels, f"{path}common.{family}")
            if members:
                common[str(family).upper()] = members
    return OreLists(
        high_value=_materials(data, "high-value", defaults.high_value, path),
        common=common,
        stones=_materials(data, "stones", defaults.stones, path),
        ignorable_interactions=_materials(
            data, "ignorable-interactions", defaults.ignorable_interactions, path
        ),
        light_sources=_materials(data, "light-sources", defaults.light_sources, path),
    )


def _load_thresholds(data: dict, defaults: Thresholds) -> Thresholds:
    path = "thresholds."
    min_blocks = _section(data, "min-blocks-for-analysis", path)
    travel = _section(data, "time-distance", path)
    torch = _section(data, "torch-usage", path)
    purity = _section(data, "mining-purity", path)
    discovery = _section(data, "initial-discovery", path)
    efficiency = _section(data, "path-efficiency", path)
    levels = _section(data, "suspicion-levels", path)

    y_ranges = defaults.suspicious_y_ranges
    if "suspicious-y-levels" in data:
        raw_ranges = data["suspicious-y-levels"]
        if isinstance(raw_ranges, list):
            y_ranges = parse_y_ranges(raw_ranges)
        else:
            logger.warning("Ignoring %ssuspicious-y-levels: expected a list, got %r", path, raw_ranges)

    dt = defaults.torch_usage
    dp = defaults.mining_purity
    return Thresholds(
        min_total_actions=_value(min_blocks, "total", defaults.min_total_actions, path + "min-blocks-for-analysis.", int),
        min_stone_actions=_value(min_blocks, "stone", defaults.min_stone_actions, path + "min-blocks-for-analysis.", int),
        high_value_ratio=_value(data, "high-value-ratio", defaults.high_value_ratio, path),
        common_ore_ratios=_ratios(
            _section(data, "common-ore-ratios", path),
            defaults.common_ore_ratios,
            path + "common-ore-ratios.",
        ),
        tunnel_variance=_value(data, "tunnel-variance", defaults.tunnel_variance, path),
        tunnel_window=_value(data, "tunnel-window", defaults.tunnel_window, path, int),
        suspicious_speed=_value(data, "suspicious-speed", defaults.suspicious_speed, path),
        min_travel_distance=_value(travel, "min-distance", defaults.min_travel_distance, path + "time-distance."),
        min_travel_seconds=_value(travel, "min-seconds", defaults.min_travel_seconds, path + "time-distance."),
        y_level_concentration_ratio=_value(
            data, "y-level-concentration-ratio", defaults.y_level_concentration_ratio, path
        ),
        suspicious_y_ranges=y_ranges,
        torch_usage=TorchUsageThresholds(
            check_below_y=_value(torch, "check-below-y", dt.check_below_y, path + "torch-usage.", int),
            min_blocks=_value(torch, "min-blocks-for-check", dt.min_blocks, path + "torch-usage.", int),
            suspicious_ratio=_value(torch, "suspicious-ratio", dt.suspicious_ratio, path + "torch-usage."),
        ),
        mining_purity=MiningPurityThresholds(
            window=_value(purity, "check-window-before-ore", dp.window, path + "mining-purity.", int),
            suspicious_ratio=_value(purity, "suspicious-purity-ratio", dp.suspicious_ratio, path + "mining-purity."),
        ),
        initial_discovery_seconds=_value(
            discovery, "suspicious-time-seconds", defaults.initial_discovery_seconds, path + "initial-discovery."
        ),
        path_efficiency_ratio=_value(
            efficiency, "suspicious-efficiency-ratio", defaults.path_efficiency_ratio, path + "path-efficiency."
        ),
        suspicion_levels=_ratios(levels, defaults.suspicion_levels, path + "suspicion-levels.", str.lower),
    )


def _load_scales(data: dict, defaults: Scales) -> Scales:
    path = "scales."
    return Scales(
        high_value_ore_ratio=_value(data, "high-value-ore-ratio", defaults.high_value_ore_ratio, path),
        anomalous_mining=_value(data, "anomalous-mining", defaults.anomalous_mining, path),
        y_level_concentration=_value(data, "y-level-concentration", defaults.y_level_concentration, path),
        y_level_concentration_share=_value(
            data, "y-level-concentration-share", defaults.y_level_concentration_share, path
        ),
        y_level_zone_ore_share=_value(data, "y-level-zone-ore-share", defaults.y_level_zone_ore_share, path),
        tunneling=_value(data, "tunneling-pattern", defaults.tunneling, path),
        mining_purity=_value(data, "mining-purity", defaults.mining_purity, path),
        time_distance=_value(data, "time-distance", defaults.time_distance, path),
    )


def _load_auto_punish(data: dict, levels: Dict[str, float], defaults: AutoPunishPolicy) -> AutoPunishPolicy:
    path = "auto-punish."
    enabled = data.get("enabled", defaults.enabled)
    if not isinstance(enabled, bool):
        logger.warning("Using default for %senabled: expected true/false, got %r", path, enabled)
        enabled = defaults.enabled

    command = data.get("command", defaults.command)
    if not isinstance(command, str) or not command.strip():
        logger.warning("Using default for %scommand: got %r", path, command)
        command = defaults.command

    threshold_level = str(data.get("threshold-level", defaults.threshold_level)).lower()
    if threshold_level in levels:
        threshold_score = levels[threshold_level]
    else:
        logger.warning("Unknown %sthreshold-level %r, using %.1f", path, threshold_level, defaults.threshold_score)
        threshold_score = defaults.threshold_score

    return AutoPunishPolicy(
        enabled=enabled,
        command=command,
        threshold_level=threshold_level,
        threshold_score=threshold_score,
        cooldown_seconds=_value(data, "cooldown-seconds", defaults.cooldown_seconds, path),
    )


def config_from_dict(data: dict) -> OreWatchConfig:
    """
    Build a configuration from a YAML-shaped mapping.

    Missing keys fall back to defaults. Malformed entries are skipped with a
    logged warning; this never raises for bad values.

    Args:
        data: Mapping with kebab-case keys (see config/orewatch_defaults.yaml)

    Returns:
        OreWatchConfig snapshot
    """
    defaults = _DEFAULT_CONFIG

    weights = defaults.weights
    if "weights" in data:
        weights = validate_weights(data["weights"])

    thresholds = _load_thresholds(_section(data, "thresholds", ""), defaults.thresholds)

    return OreWatchConfig(
        weights=weights,
        ore_lists=_load_ore_lists(_section(data, "ore-lists", ""), defaults.ore_lists),
        thresholds=thresholds,
        scales=_load_scales(_section(data, "scales", ""), defaults.scales),
        auto_punish=_load_auto_punish(
            _section(data, "auto-punish", ""),
            thresholds.suspicion_levels,
            defaults.auto_punish,
        ),
        analysis_check_interval=max(
            1, _value(data, "analysis-check-interval", defaults.analysis_check_interval, "", int)
        ),
    )


def load_config_from_yaml(path: Union[str, Path]) -> OreWatchConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        OreWatchConfig snapshot

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or its root is not a mapping
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML in {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a dictionary in {config_path}")

    return config_from_dict(data)
