"""
Automatic enforcement for high suspicion scores.

Scoring never enforces by itself. Callers decide when to run the trigger,
which emits one command to an external sink per matching report.

Repeated analysis of the same player re-triggers enforcement every time
unless an EnforcementGuard is attached. The guard is opt-in
(cooldown_seconds = 0 disables it).
"""

import logging
import re
import threading
import time
from typing import Callable, Dict, Optional

from world.orewatch.computation import analyze_identity
from world.orewatch.config import PLAYER_PLACEHOLDER, AutoPunishPolicy, OreWatchConfig
from world.orewatch.core import SuspicionReport

logger = logging.getLogger(__name__)

CommandSink = Callable[[str], None]

_PLACEHOLDER_PATTERN = re.compile(re.escape(PLAYER_PLACEHOLDER), re.IGNORECASE)


def should_enforce(report: SuspicionReport, policy: AutoPunishPolicy) -> bool:
    """Enabled, backed by a full analysis, and at or above the threshold."""
    return (
        policy.enabled
        and not report.insufficient_data
        and report.overall_score >= policy.threshold_score
    )


def build_enforcement_command(template: str, identity_name: str) -> str:
    """
    Substitute the player placeholder into a command template.

    The placeholder match is case-insensitive, so %PLAYER% works too.
    """
    return _PLACEHOLDER_PATTERN.sub(lambda _: identity_name, template)


class EnforcementGuard:
    """
    Per-identity cooldown between enforcement requests.

    Suppresses duplicates when back-to-back analyses both cross the
    threshold. Thread-safe.
    """

    def __init__(self, cooldown_seconds: float) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._last_enforced: Dict[str, float] = {}
        self._lock = threading.Lock()

    def try_acquire(self, identity_id: str, now: float) -> bool:
        """
        Claim the right to enforce now.

        Returns:
            True if no enforcement happened within the cooldown window
        """
        if self.cooldown_seconds <= 0:
            return True
        with self._lock:
            last = self._last_enforced.get(identity_id)
            if last is not None and now - last < self.cooldown_seconds:
                return False
            self._last_enforced[identity_id] = now
            return True

    def reset(self, identity_id: str) -> None:
        """Forget an identity's last enforcement."""
        with self._lock:
            self._last_enforced.pop(identity_id, None)


class EnforcementTrigger:
    """
    Turns qualifying reports into commands for an external sink.

    Args:
        sink: Callable receiving the command string (fire-and-forget)
        policy: Auto-punish settings from the config
        guard: Optional duplicate-suppression guard
        clock: Time source in seconds, for the guard
    """

    def __init__(
        self,
        sink: CommandSink,
        policy: AutoPunishPolicy,
        guard: Optional[EnforcementGuard] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sink = sink
        self.policy = policy
        self.guard = guard
        self.clock = clock

    @classmethod
    def from_config(cls, sink: CommandSink, config: OreWatchConfig) -> "EnforcementTrigger":
        """Build a trigger, attaching a guard only when a cooldown is configured."""
        policy = config.auto_punish
        guard = EnforcementGuard(policy.cooldown_seconds) if policy.cooldown_seconds > 0 else None
        return cls(sink, policy, guard)

    def maybe_enforce(self, report: SuspicionReport) -> Optional[str]:
        """
        Emit one enforcement command if the report qualifies.

        Args:
            report: Report from the aggregator

        Returns:
            The command sent, or None if nothing was sent
        """
        if not should_enforce(report, self.policy):
            return None

        if self.guard is not None and not self.guard.try_acquire(report.identity_id, self.clock()):
            logger.info(
                "Suppressing repeat enforcement for %s (score: %.1f)",
                report.identity_name, report.overall_score,
            )
            return None

        command = build_enforcement_command(self.policy.command, report.identity_name)
        logger.info(
            "Auto-punishing player %s (score: %.1f). Executing command: '%s'",
            report.identity_name, report.overall_score, command,
        )
        try:
            self.sink(command)
        except Exception:
            logger.exception("Enforcement sink failed for command '%s'", command)
        return command


def analyze_and_act(
    identity_id: str,
    store,
    config: OreWatchConfig,
    trigger: EnforcementTrigger
) -> SuspicionReport:
    """
    Analyze an identity, then hand the report to the enforcement trigger.

    Args:
        identity_id: Who to analyze
        store: Log source with fetch_actions(identity_id)
        config: Configuration snapshot
        trigger: Enforcement trigger

    Returns:
        The report, whether or not enforcement fired
    """
    report = analyze_identity(identity_id, store, config)
    trigger.maybe_enforce(report)
    return report
