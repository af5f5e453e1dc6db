from __future__ import annotations

import pytest

from rebase_planner.plan import (
    RebaseAction,
    UnknownEntryError,
    find_entry,
    reorder,
    set_action,
    set_reword_text,
)


def _ids(plan) -> list[str]:
    return [entry.short_id for entry in plan]


def test_create_plan_keeps_every_commit_in_listing_order(make_plan) -> None:
    plan = make_plan(("abc123", "First commit"), ("def456", "Second commit"))

    assert _ids(plan) == ["abc123", "def456"]
    assert all(entry.action is RebaseAction.KEEP for entry in plan)
    assert all(entry.reword_text is None for entry in plan)


def test_set_action_reword_seeds_text_with_summary(make_plan) -> None:
    plan = make_plan(("abc123", "First commit"))
    entry_id = plan[0].id

    updated = set_action(plan, entry_id, RebaseAction.REWORD)

    assert updated[0].action is RebaseAction.REWORD
    assert updated[0].reword_text == "First commit"
    assert plan[0].action is RebaseAction.KEEP, "original plan must not change"


def test_set_action_keeps_existing_reword_text_and_clears_it_for_other_actions(make_plan) -> None:
    plan = make_plan(("abc123", "First commit"))
    entry_id = plan[0].id
    plan = set_action(plan, entry_id, RebaseAction.REWORD)
    plan = set_reword_text(plan, entry_id, "Better message")

    again = set_action(plan, entry_id, RebaseAction.REWORD)
    assert again[0].reword_text == "Better message"

    squashed = set_action(plan, entry_id, RebaseAction.FOLD_KEEP_MESSAGE)
    assert squashed[0].action is RebaseAction.FOLD_KEEP_MESSAGE
    assert squashed[0].reword_text is None


def test_set_reword_text_is_ignored_unless_rewording(make_plan) -> None:
    plan = make_plan(("abc123", "First commit"))

    updated = set_reword_text(plan, plan[0].id, "Ignored")

    assert updated == plan
    assert updated[0].reword_text is None


def test_unknown_entry_fails_fast(make_plan) -> None:
    plan = make_plan(("abc123", "First commit"))

    with pytest.raises(UnknownEntryError):
        set_action(plan, "missing", RebaseAction.REMOVE)
    with pytest.raises(UnknownEntryError):
        reorder(plan, "missing", 0)
    with pytest.raises(UnknownEntryError):
        find_entry(plan, "missing")


def test_reorder_shifts_entries_between_old_and_new_position(make_plan) -> None:
    plan = make_plan(("a1", "A"), ("b2", "B"), ("c3", "C"), ("d4", "D"))

    forward = reorder(plan, plan[0].id, 2)
    backward = reorder(plan, plan[3].id, 1)

    assert _ids(forward) == ["b2", "c3", "a1", "d4"]
    assert _ids(backward) == ["a1", "d4", "b2", "c3"]


def test_reorder_clamps_target_index(make_plan) -> None:
    plan = make_plan(("a1", "A"), ("b2", "B"), ("c3", "C"))

    assert _ids(reorder(plan, plan[0].id, 99)) == ["b2", "c3", "a1"]
    assert _ids(reorder(plan, plan[2].id, -5)) == ["c3", "a1", "b2"]


def test_reorder_preserves_identities_actions_and_reword_text(make_plan) -> None:
    plan = make_plan(("a1", "A"), ("b2", "B"), ("c3", "C"))
    plan = set_action(plan, plan[1].id, RebaseAction.REWORD)
    plan = set_reword_text(plan, plan[1].id, "B, reworded")
    plan = set_action(plan, plan[2].id, RebaseAction.FOLD_DISCARD_MESSAGE)

    moved = reorder(plan, plan[2].id, 0)

    assert sorted(entry.id for entry in moved) == sorted(entry.id for entry in plan)
    by_id = {entry.id: entry for entry in plan}
    for entry in moved:
        assert entry.action is by_id[entry.id].action
        assert entry.reword_text == by_id[entry.id].reword_text
