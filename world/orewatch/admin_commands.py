"""
Admin commands for ore-watch.

These are not full Evennia commands, but the logic that would
be called by the /orewatch command handlers. Each returns the text to
show the admin.
"""

import time
from typing import Tuple

from world.orewatch.config import OreWatchConfig, suspicion_level, with_auto_punish
from world.orewatch.core import ActionType, SuspicionReport


def _format_time(timestamp_ms: int) -> str:
    return time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(timestamp_ms / 1000.0))


def cmd_orewatch_help() -> str:
    """Admin command: orewatch"""
    output = []
    output.append("--- OreWatch Help ---")
    output.append("  orewatch check <player>      Run a suspicion analysis")
    output.append("  orewatch stats <player>      Blocks broken per material")
    output.append("  orewatch trace <player>      Recent mining activity")
    output.append("  orewatch autopunish <on|off> Toggle automatic enforcement")
    return "\n".join(output)


def cmd_orewatch_check(report: SuspicionReport, config: OreWatchConfig) -> str:
    """
    Admin command: orewatch check <player>

    Format a suspicion report for display.

    Args:
        report: Report from the aggregator
        config: Config used for the analysis (for level labels)

    Returns:
        Formatted string for admin display
    """
    output = []
    output.append(f"Suspicion Report: {report.identity_name}")
    output.append(f"  Player ID: {report.identity_id}")
    output.append(f"  Score: {report.overall_score:.1f} / 100")
    output.append(f"  Level: {suspicion_level(report.overall_score, config)}")
    output.append("")

    if report.insufficient_data:
        output.append(report.details[0])
        return "\n".join(output)

    output.append("Details:")
    for result in report.results:
        weight = config.weight(result.key)
        output.append(f"  {result.explanation} (weight {weight:.2f})")

    policy = config.auto_punish
    output.append("")
    output.append(
        f"Auto-punish: {'on' if policy.enabled else 'off'} "
        f"(threshold {policy.threshold_score:.1f}, level '{policy.threshold_level}')"
    )
    return "\n".join(output)


def cmd_orewatch_stats(store, identity_id: str) -> str:
    """
    Admin command: orewatch stats <player>

    Blocks broken per material, most frequent first.

    Args:
        store: Action log store
        identity_id: Player to summarize

    Returns:
        Formatted string for admin display
    """
    stats = store.mining_stats(identity_id)
    total = sum(stats.values())

    output = []
    output.append(f"Mining Stats: {identity_id}")
    output.append(f"  Total actions: {store.action_count(identity_id)}")
    output.append(f"  Blocks broken: {total}")
    output.append("")

    if not stats:
        output.append("  (no mining activity recorded)")
        return "\n".join(output)

    for material, count in sorted(stats.items(), key=lambda item: (-item[1], item[0])):
        share = count / total * 100
        output.append(f"  {material}: {count} ({share:.1f}%)")
    return "\n".join(output)


def cmd_orewatch_trace(store, identity_id: str, limit: int = 100) -> str:
    """
    Admin command: orewatch trace <player>

    The most recent break actions, newest first.

    Args:
        store: Action log store
        identity_id: Player to trace
        limit: Maximum number of actions to list

    Returns:
        Formatted string for admin display
    """
    actions = store.recent_actions(identity_id, limit=limit, action_type=ActionType.BREAK)
    if not actions:
        return f"{identity_id} has no recent mining activity."

    output = []
    output.append(f"Recent mining activity for {actions[0].identity_name} ({len(actions)} actions):")
    for action in actions:
        output.append(
            f"  {_format_time(action.timestamp)}  {action.label:<24} "
            f"{action.world} ({action.x}, {action.y}, {action.z})"
        )
    return "\n".join(output)


def cmd_orewatch_autopunish(config: OreWatchConfig, enabled: bool) -> Tuple[OreWatchConfig, str]:
    """
    Admin command: orewatch autopunish <on|off>

    Configs are immutable, so this returns the new config for the caller to
    swap in for future analyses.

    Returns:
        (new config, message for the admin)
    """
    new_config = with_auto_punish(config, enabled)
    state = "enabled" if enabled else "disabled"
    return new_config, f"Auto-punish {state}."
