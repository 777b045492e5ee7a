"""
Action log storage.

- InMemoryActionLog: per-identity, append-only, ordered by timestamp
- JSON files: one file per identity for saving/loading a log between runs
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from world.orewatch.core import Action, ActionType

logger = logging.getLogger(__name__)


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryActionLog:
    """
    Thread-safe action log keyed by identity.

    Appends must keep each identity's log in non-decreasing timestamp order;
    the analysis windows depend on it.
    """

    def __init__(self) -> None:
        self._logs: Dict[str, List[Action]] = {}
        self._lock = threading.Lock()

    def append(self, action: Action) -> int:
        """
        Append one action.

        Returns:
            The identity's action count after the append

        Raises:
            ValueError: If the action is older than the identity's last action
        """
        with self._lock:
            log = self._logs.setdefault(action.identity_id, [])
            if log and action.timestamp < log[-1].timestamp:
                raise ValueError(
                    f"Out-of-order action for {action.identity_id}: "
                    f"{action.timestamp} < {log[-1].timestamp}"
                )
            log.append(action)
            return len(log)

    def extend(self, actions) -> None:
        """Append several actions in order."""
        for action in actions:
            self.append(action)

    def fetch_actions(self, identity_id: str) -> List[Action]:
        """
        Snapshot of an identity's log, oldest first.

        Unknown identities get an empty list.
        """
        with self._lock:
            return list(self._logs.get(identity_id, ()))

    def action_count(self, identity_id: str) -> int:
        """Number of actions recorded for an identity."""
        with self._lock:
            return len(self._logs.get(identity_id, ()))

    def mining_stats(self, identity_id: str) -> Dict[str, int]:
        """Blocks broken per material."""
        stats: Dict[str, int] = {}
        for action in self.fetch_actions(identity_id):
            if action.action_type is ActionType.BREAK:
                stats[action.label] = stats.get(action.label, 0) + 1
        return stats

    def recent_actions(
        self,
        identity_id: str,
        limit: int = 100,
        action_type: Optional[ActionType] = None
    ) -> List[Action]:
        """
        Most recent actions, newest first.

        Args:
            identity_id: Whose log to read
            limit: Maximum number of actions
            action_type: Only this kind, if given
        """
        actions = self.fetch_actions(identity_id)
        if action_type is not None:
            actions = [a for a in actions if a.action_type is action_type]
        return list(reversed(actions))[:max(0, limit)]

    def identities(self) -> List[str]:
        """Identities with at least one recorded action."""
        with self._lock:
            return sorted(self._logs)

    def clear(self, identity_id: str) -> int:
        """
        Drop an identity's log.

        Returns:
            Number of actions removed
        """
        with self._lock:
            return len(self._logs.pop(identity_id, ()))


# =============================================================================
# JSON ENCODING
# =============================================================================

def serialize_action(action: Action) -> dict:
    """Convert an Action to a JSON-serializable dict (identity is per file)."""
    return {
        "identity_name": action.identity_name,
        "action_type": action.action_type.value,
        "label": action.label,
        "world": action.world,
        "x": action.x,
        "y": action.y,
        "z": action.z,
        "timestamp": action.timestamp,
    }


def deserialize_action(identity_id: str, data: dict) -> Action:
    """
    Reconstruct an Action from a JSON dict.

    Raises:
        ValueError: If a field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise ValueError(f"Invalid action record for {identity_id}: {data!r} (not an object)")
    try:
        action = Action(
            identity_id=identity_id,
            identity_name=str(data.get("identity_name", "")),
            action_type=ActionType(data["action_type"]),
            label=str(data["label"]),
            world=str(data.get("world", "")),
            x=int(data["x"]),
            y=int(data["y"]),
            z=int(data["z"]),
            timestamp=int(data["timestamp"]),
        )
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"Invalid action record for {identity_id}: {data!r} ({e})")
    return action


def serialize_action_log(identity_id: str, actions: List[Action]) -> dict:
    """
    Serialize one identity's log.

    Args:
        identity_id: Whose log this is
        actions: Log entries, oldest first

    Returns:
        JSON-serializable dict
    """
    return {
        "identity_id": identity_id,  # for validation
        "actions": [serialize_action(a) for a in actions],
        "saved_at": time.time(),  # Metadata for debugging
    }


def deserialize_action_log(state_data: dict, identity_id: str) -> List[Action]:
    """
    Decode a saved log.

    Corrupt entries are skipped with a warning so one bad record does not
    lose the rest of the log.

    Raises:
        ValueError: If the data is not an object or identity_id mismatches
    """
    if not isinstance(state_data, dict):
        raise ValueError(f"Invalid action log for {identity_id}: expected an object")
    if state_data.get("identity_id") != identity_id:
        raise ValueError(
            f"State mismatch: {state_data.get('identity_id')} != {identity_id}"
        )

    actions = []
    records = state_data.get("actions", [])
    if not isinstance(records, list):
        raise ValueError(f"Invalid action log for {identity_id}: actions must be a list")

    for record in records:
        try:
            actions.append(deserialize_action(identity_id, record))
        except ValueError as e:
            logger.warning("Skipping stored action: %s", e)
    return actions


# =============================================================================
# FILE I/O
# =============================================================================

def _log_file(identity_id: str, data_dir: str) -> Path:
    """
    Path of an identity's log file inside data_dir.

    Raises:
        ValueError: If the identity_id could escape data_dir
    """
    if not identity_id or identity_id in (".", "..") or any(sep in identity_id for sep in ("/", "\\", "\0")):
        raise ValueError(f"Invalid identity_id for a log file name: {identity_id!r}")
    return Path(data_dir) / f"{identity_id}.json"


def save_action_log(
    store: InMemoryActionLog,
    identity_id: str,
    data_dir: str = "data/orewatch/actions"
) -> None:
    """
    Save an identity's log to a JSON file.

    Creates directory if it doesn't exist.
    Writes to: {data_dir}/{identity_id}.json

    Args:
        store: Store holding the log
        identity_id: Whose log to save
        data_dir: Directory for log files (relative to project root)

    Raises:
        ValueError: If identity_id is not usable as a file name
    """
    log_file = _log_file(identity_id, data_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    state_data = serialize_action_log(identity_id, store.fetch_actions(identity_id))

    # Write atomically (write to temp, then rename)
    temp_file = log_file.with_suffix(".json.tmp")
    with open(temp_file, 'w') as f:
        json.dump(state_data, f, indent=2)

    temp_file.replace(log_file)


def load_action_log(
    store: InMemoryActionLog,
    identity_id: str,
    data_dir: str = "data/orewatch/actions"
) -> bool:
    """
    Load an identity's saved log into a store.

    Replaces whatever the store held for that identity.

    Args:
        store: Store to load into
        identity_id: Whose log to load
        data_dir: Directory for log files

    Returns:
        True if a log was loaded, False if no file was found

    Raises:
        ValueError: If identity_id is not usable as a file name, or the file
            is not valid JSON or has a mismatched identity_id
    """
    log_file = _log_file(identity_id, data_dir)
    if not log_file.exists():
        return False

    with open(log_file, 'r') as f:
        try:
            state_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupted action log {log_file}: {e}")

    actions = deserialize_action_log(state_data, identity_id)
    actions.sort(key=lambda a: a.timestamp)

    store.clear(identity_id)
    store.extend(actions)
    return True
