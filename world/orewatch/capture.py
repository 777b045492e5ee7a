"""
Capture helpers: turn game events into Actions.

These hold the only per-player mutable state in the system: which players
are currently inside a suspicious Y band. The analysis engine never reads
it; it only sees the ZONE_ENTRY actions emitted on entry.
"""

import threading
import time
from typing import Iterable, Optional, Set, Tuple

from world.orewatch.core import Action, ActionType
from world.orewatch.validation import y_in_ranges


def now_millis() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def make_action(
    identity_id: str,
    identity_name: str,
    action_type: ActionType,
    label: str,
    world: str,
    x: int,
    y: int,
    z: int,
    timestamp: Optional[int] = None
) -> Action:
    """
    Build an Action, stamping the current time if none is given.

    Labels are upper-cased to match configured material names.
    """
    return Action(
        identity_id=identity_id,
        identity_name=identity_name,
        action_type=action_type,
        label=label.upper(),
        world=world,
        x=int(x),
        y=int(y),
        z=int(z),
        timestamp=now_millis() if timestamp is None else int(timestamp),
    )


class ZoneTracker:
    """
    Tracks which players are inside a suspicious Y band.

    observe_move() returns a ZONE_ENTRY action on the transition from outside
    to inside; leaving the band only updates state. Thread-safe.

    Args:
        ranges: Inclusive (low, high) Y bands from the config
    """

    def __init__(self, ranges: Iterable[Tuple[int, int]]) -> None:
        self.ranges = tuple(ranges)
        self._inside: Set[str] = set()
        self._lock = threading.Lock()

    def is_inside(self, identity_id: str) -> bool:
        with self._lock:
            return identity_id in self._inside

    def enter(self, identity_id: str) -> bool:
        """
        Mark a player as inside.

        Returns:
            True if this was a transition (they were outside)
        """
        with self._lock:
            if identity_id in self._inside:
                return False
            self._inside.add(identity_id)
            return True

    def leave(self, identity_id: str) -> bool:
        """
        Mark a player as outside.

        Returns:
            True if this was a transition (they were inside)
        """
        with self._lock:
            if identity_id not in self._inside:
                return False
            self._inside.discard(identity_id)
            return True

    def observe_move(
        self,
        identity_id: str,
        identity_name: str,
        world: str,
        x: int,
        y: int,
        z: int,
        timestamp: Optional[int] = None
    ) -> Optional[Action]:
        """
        Update zone state for a block-to-block move.

        Returns:
            ZONE_ENTRY action labelled "Y=<y>" on entry, otherwise None
        """
        if y_in_ranges(y, self.ranges):
            if self.enter(identity_id):
                return make_action(
                    identity_id, identity_name, ActionType.ZONE_ENTRY,
                    f"Y={int(y)}", world, x, y, z, timestamp,
                )
            return None

        self.leave(identity_id)
        return None

    def forget(self, identity_id: str) -> None:
        """Drop state for a player who disconnected."""
        self.leave(identity_id)
