"""
Suspicion score aggregation.

Runs every registered detector over one context, weights the partial
scores, and clamps the weighted sum into [0, 100]. Pure: no enforcement
happens here (see enforcement.py).
"""

import logging
from typing import List, Sequence

from world.orewatch.config import OreWatchConfig
from world.orewatch.context import build_context
from world.orewatch.core import Action, HeuristicResult, SuspicionReport
from world.orewatch.heuristics import DETECTORS, clamp_score

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


def resolve_identity_name(actions: Sequence[Action]) -> str:
    """Name from the most recent action that carries one."""
    for action in reversed(actions):
        name = getattr(action, "identity_name", None)
        if isinstance(name, str) and name:
            return name
    return UNKNOWN_NAME


def insufficient_data_report(identity_id: str, identity_name: str, config: OreWatchConfig) -> SuspicionReport:
    """The report returned when a log is below the minimum size."""
    minimum = config.thresholds.min_total_actions
    return SuspicionReport(
        identity_id=identity_id,
        identity_name=identity_name,
        overall_score=0.0,
        details=(f"Not enough data available for this player (<{minimum} actions).",),
        results=(),
        insufficient_data=True,
    )


def combine_scores(results: Sequence[HeuristicResult], config: OreWatchConfig) -> float:
    """
    Weighted sum of detector scores, clamped once at the end.

    Weights may sum past 1, so the final clamp is what bounds the total.
    """
    total = sum(result.score * config.weight(result.key) for result in results)
    return clamp_score(total)


def analyze_actions(
    identity_id: str,
    actions: Sequence[Action],
    config: OreWatchConfig
) -> SuspicionReport:
    """
    Score one identity's action log.

    Args:
        identity_id: Who the log belongs to
        actions: Full log, ascending by timestamp
        config: Configuration snapshot

    Returns:
        SuspicionReport with details in detector registration order
    """
    identity_name = resolve_identity_name(actions)

    ctx = build_context(actions, config)
    if ctx is None:
        logger.debug(
            "Skipping analysis for %s: %d actions < %d",
            identity_id, len(actions), config.thresholds.min_total_actions,
        )
        return insufficient_data_report(identity_id, identity_name, config)

    results: List[HeuristicResult] = []
    for key, detector in DETECTORS:
        result = detector(ctx, config)
        results.append(HeuristicResult(key, clamp_score(result.score), result.explanation))

    overall = combine_scores(results, config)
    logger.debug(
        "Analysis for %s (%s): score=%.1f over %d actions, %d breaks, %d valuable finds",
        identity_name, identity_id, overall,
        len(ctx.all_actions), len(ctx.break_actions), len(ctx.valuable_finds),
    )

    return SuspicionReport(
        identity_id=identity_id,
        identity_name=identity_name,
        overall_score=overall,
        details=tuple(result.explanation for result in results),
        results=tuple(results),
    )


def analyze_identity(identity_id: str, store, config: OreWatchConfig) -> SuspicionReport:
    """
    Fetch an identity's log from a store and score it.

    Args:
        identity_id: Who to analyze
        store: Anything with fetch_actions(identity_id) -> list of Action
        config: Configuration snapshot

    Returns:
        SuspicionReport (insufficient data for unknown identities)
    """
    actions = store.fetch_actions(identity_id)
    return analyze_actions(identity_id, actions, config)
