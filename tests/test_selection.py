# tests/test_selection.py

import pytest

from studently_rollover.registry import ITEM_KEYS
from studently_rollover.selection import RolloverSelection


def test_selection_seeded_from_defaults():
    selection = RolloverSelection()

    assert set(selection) == set(ITEM_KEYS)
    assert selection["students"]
    assert not selection["users"]


def test_toggle_flips_state():
    selection = RolloverSelection()

    assert selection.toggle("students") is False
    assert selection["students"] is False
    assert selection.toggle("students") is True


def test_initial_overrides():
    selection = RolloverSelection({"courses": False, "users": True})

    assert not selection["courses"]
    assert selection["users"]
    assert "users" in selection.enabled_keys()
    assert "courses" not in selection.enabled_keys()


def test_unknown_key_rejected():
    selection = RolloverSelection()

    with pytest.raises(KeyError):
        selection.toggle("library")
    with pytest.raises(KeyError):
        RolloverSelection({"library": True})


def test_as_dict_is_a_copy():
    selection = RolloverSelection()
    snapshot = selection.as_dict()
    snapshot["students"] = False

    assert selection["students"]
