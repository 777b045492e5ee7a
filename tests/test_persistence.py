"""
Tests for the action log store and JSON persistence.

See world/orewatch/persistence.py for implementation.
"""

import json

import pytest

from world.orewatch.core import ActionType
from world.orewatch.persistence import (
    deserialize_action,
    load_action_log,
    save_action_log,
)
from tests.helpers import PLAYER_ID, brk, interact, place, restamp, stones


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

def test_append_returns_count(store):
    assert store.append(brk("STONE", t=0)) == 1
    assert store.append(brk("STONE", t=5)) == 2
    assert store.action_count(PLAYER_ID) == 2


def test_append_allows_equal_timestamps(store):
    store.append(brk("STONE", t=10))
    store.append(brk("DIRT", t=10))

    assert store.action_count(PLAYER_ID) == 2


def test_append_rejects_out_of_order(store):
    store.append(brk("STONE", t=10))

    with pytest.raises(ValueError, match="Out-of-order"):
        store.append(brk("STONE", t=9))
    assert store.action_count(PLAYER_ID) == 1


def test_logs_are_per_identity(store):
    store.append(brk("STONE", t=10, identity_id="a"))
    store.append(brk("STONE", t=0, identity_id="b"))

    assert store.identities() == ["a", "b"]
    assert store.action_count("a") == 1


def test_fetch_unknown_identity_is_empty(store):
    assert store.fetch_actions("ghost") == []


def test_fetch_returns_snapshot(store):
    store.extend(restamp(stones(3)))

    snapshot = store.fetch_actions(PLAYER_ID)
    snapshot.clear()

    assert store.action_count(PLAYER_ID) == 3


def test_mining_stats_counts_breaks_only(store):
    store.extend(restamp([brk("STONE"), brk("STONE"), brk("DIAMOND_ORE"), place("TORCH"), interact("CHEST")]))

    assert store.mining_stats(PLAYER_ID) == {"STONE": 2, "DIAMOND_ORE": 1}


def test_recent_actions_newest_first(store):
    store.extend(restamp([brk("STONE"), place("TORCH"), brk("DIRT"), brk("DIAMOND_ORE")]))

    recent = store.recent_actions(PLAYER_ID, limit=2, action_type=ActionType.BREAK)

    assert [a.label for a in recent] == ["DIAMOND_ORE", "DIRT"]
    assert [a.label for a in store.recent_actions(PLAYER_ID)] == ["DIAMOND_ORE", "DIRT", "TORCH", "STONE"]


def test_clear(store):
    store.extend(restamp(stones(4)))

    assert store.clear(PLAYER_ID) == 4
    assert store.clear(PLAYER_ID) == 0
    assert store.identities() == []


# =============================================================================
# JSON FILES
# =============================================================================

def test_save_and_load(store, tmp_path):
    actions = restamp([brk("STONE", x=1, y=-5, z=3), place("TORCH", y=-5), brk("DIAMOND_ORE", y=-6)])
    store.extend(actions)

    save_action_log(store, PLAYER_ID, data_dir=str(tmp_path))
    store.clear(PLAYER_ID)

    assert load_action_log(store, PLAYER_ID, data_dir=str(tmp_path)) is True
    assert store.fetch_actions(PLAYER_ID) == actions
    assert not list(tmp_path.glob("*.tmp"))


def test_save_creates_directory(store, tmp_path):
    store.append(brk("STONE"))
    data_dir = tmp_path / "nested" / "actions"

    save_action_log(store, PLAYER_ID, data_dir=str(data_dir))

    assert (data_dir / f"{PLAYER_ID}.json").exists()


def test_load_missing_file(store, tmp_path):
    assert load_action_log(store, PLAYER_ID, data_dir=str(tmp_path)) is False


def test_load_replaces_existing_log(store, tmp_path):
    store.extend(restamp(stones(2)))
    save_action_log(store, PLAYER_ID, data_dir=str(tmp_path))
    store.extend(restamp(stones(5), start=10000))

    load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))

    assert store.action_count(PLAYER_ID) == 2


def test_load_sorts_by_timestamp(store, tmp_path):
    data = {
        "identity_id": PLAYER_ID,
        "actions": [
            {"identity_name": "Steve", "action_type": "BREAK", "label": "DIRT", "world": "w", "x": 0, "y": 0, "z": 0, "timestamp": 20},
            {"identity_name": "Steve", "action_type": "BREAK", "label": "STONE", "world": "w", "x": 0, "y": 0, "z": 0, "timestamp": 10},
        ],
    }
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps(data))

    load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))

    assert [a.label for a in store.fetch_actions(PLAYER_ID)] == ["STONE", "DIRT"]


def test_load_skips_corrupt_entries(store, tmp_path, caplog):
    data = {
        "identity_id": PLAYER_ID,
        "actions": [
            {"action_type": "BREAK", "label": "STONE", "x": 0, "y": 0, "z": 0, "timestamp": 10},
            {"action_type": "EXPLODE", "label": "TNT", "x": 0, "y": 0, "z": 0, "timestamp": 11},
            {"action_type": "BREAK", "label": "STONE", "x": "far", "y": 0, "z": 0, "timestamp": 12},
        ],
    }
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps(data))

    load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))

    assert store.action_count(PLAYER_ID) == 1
    assert "Skipping stored action" in caplog.text


def test_load_corrupt_json(store, tmp_path):
    (tmp_path / f"{PLAYER_ID}.json").write_text("{not json")

    with pytest.raises(ValueError, match="Corrupted action log"):
        load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))


def test_load_identity_mismatch(store, tmp_path):
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps({"identity_id": "someone-else", "actions": []}))

    with pytest.raises(ValueError, match="State mismatch"):
        load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))


def test_deserialize_action_missing_field():
    with pytest.raises(ValueError, match="Invalid action record"):
        deserialize_action(PLAYER_ID, {"action_type": "BREAK", "label": "STONE"})


def test_load_skips_non_object_entries(store, tmp_path, caplog):
    data = {
        "identity_id": PLAYER_ID,
        "actions": [
            "garbage",
            None,
            {"action_type": "BREAK", "label": "STONE", "x": 0, "y": 0, "z": 0, "timestamp": 10},
            {"action_type": "BREAK", "label": "STONE", "x": 1e999, "y": 0, "z": 0, "timestamp": 11},
        ],
    }
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps(data))

    load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))

    assert store.action_count(PLAYER_ID) == 1
    assert "Skipping stored action" in caplog.text


def test_load_non_object_root(store, tmp_path):
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps(["not", "an", "object"]))

    with pytest.raises(ValueError, match="expected an object"):
        load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))


def test_load_actions_not_a_list(store, tmp_path):
    (tmp_path / f"{PLAYER_ID}.json").write_text(json.dumps({"identity_id": PLAYER_ID, "actions": "oops"}))

    with pytest.raises(ValueError, match="actions must be a list"):
        load_action_log(store, PLAYER_ID, data_dir=str(tmp_path))


@pytest.mark.parametrize("identity_id", ["../escape", "a/b", "a\\b", "..", ""])
def test_identity_cannot_escape_data_dir(store, tmp_path, identity_id):
    data_dir = tmp_path / "actions"

    with pytest.raises(ValueError, match="Invalid identity_id"):
        save_action_log(store, identity_id, data_dir=str(data_dir))
    with pytest.raises(ValueError, match="Invalid identity_id"):
        load_action_log(store, identity_id, data_dir=str(data_dir))
    assert not list(tmp_path.rglob("*.json*"))
