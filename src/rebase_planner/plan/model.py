"""Ordered plan of commit entries and the edits users apply to it.

A plan is an immutable ``tuple`` of :class:`PlanEntry` objects in replay order
(oldest first).  Every operation returns a new tuple; entries are replaced,
never mutated.  Entry identity is the full commit id.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from .autosquash import apply_autosquash as _autosquash
from .schema import CommitSnapshot, PlanEntry, RebaseAction

Plan = Tuple[PlanEntry, ...]


class PlanError(RuntimeError):
    """Base error raised for invalid plan operations."""


class UnknownEntryError(PlanError, LookupError):
    """Raised when an operation names a commit that is not part of the plan."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"No plan entry for commit {entry_id!r}")
        self.entry_id = entry_id


def create_plan(commits: Iterable[CommitSnapshot]) -> Plan:
    """Wrap listed commits into a fresh plan where every entry is kept."""
    return tuple(PlanEntry(commit=commit) for commit in commits)


def index_of(entries: Sequence[PlanEntry], entry_id: str) -> int:
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return index
    raise UnknownEntryError(entry_id)


def find_entry(entries: Sequence[PlanEntry], entry_id: str) -> PlanEntry:
    """Return the entry for ``entry_id`` or raise :class:`UnknownEntryError`."""
    return entries[index_of(entries, entry_id)]


def _replace_at(entries: Sequence[PlanEntry], index: int, entry: PlanEntry) -> Plan:
    updated = list(entries)
    updated[index] = entry
    return tuple(updated)


def set_action(entries: Sequence[PlanEntry], entry_id: str, action: RebaseAction) -> Plan:
    """Assign ``action`` to the entry, keeping the reword text consistent.

    Switching to reword seeds the text with the original summary (an entry
    that already is a reword keeps its text); any other action clears it.
    """
    index = index_of(entries, entry_id)
    entry = entries[index]
    action = RebaseAction(action)

    if action is RebaseAction.REWORD:
        if entry.action is RebaseAction.REWORD and entry.reword_text is not None:
            text = entry.reword_text
        else:
            text = entry.summary
    else:
        text = None

    if entry.action is action and entry.reword_text == text:
        return tuple(entries)
    return _replace_at(entries, index, entry.model_copy(update={"action": action, "reword_text": text}))


def set_reword_text(entries: Sequence[PlanEntry], entry_id: str, text: str) -> Plan:
    """Store the new message of a reworded entry; ignored for other actions."""
    index = index_of(entries, entry_id)
    entry = entries[index]
    if entry.action is not RebaseAction.REWORD:
        return tuple(entries)
    return _replace_at(entries, index, entry.model_copy(update={"reword_text": text}))


def reorder(entries: Sequence[PlanEntry], entry_id: str, new_index: int) -> Plan:
    """Move the entry to ``new_index`` (clamped), shifting the ones in between."""
    old_index = index_of(entries, entry_id)
    target = max(0, min(new_index, len(entries) - 1))
    if target == old_index:
        return tuple(entries)
    updated = list(entries)
    entry = updated.pop(old_index)
    updated.insert(target, entry)
    return tuple(updated)


def apply_autosquash(entries: Sequence[PlanEntry]) -> Plan:
    """Fold ``fixup!``/``squash!`` commits into their targets."""
    return _autosquash(entries)


__all__ = [
    "Plan",
    "PlanError",
    "UnknownEntryError",
    "apply_autosquash",
    "create_plan",
    "find_entry",
    "index_of",
    "reorder",
    "set_action",
    "set_reword_text",
]
