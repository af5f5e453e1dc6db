"""Structural validation of rebase plans."""

from __future__ import annotations

from typing import List, Sequence, Set

from .schema import FindingKind, PlanEntry, RebaseAction, ValidationFinding


def is_orphaned(entries: Sequence[PlanEntry], position: int) -> bool:
    """Return ``True`` when the fold at ``position`` has nothing to fold into."""
    entry = entries[position]
    if not entry.action.is_fold:
        return False
    if position == 0:
        return True
    return entries[position - 1].action is RebaseAction.REMOVE


def find_orphaned_folds(entries: Sequence[PlanEntry]) -> List[ValidationFinding]:
    """Report fold entries that are first in the plan or follow a removed commit."""
    return [
        ValidationFinding(entry_id=entry.id, kind=FindingKind.ORPHANED_FOLD, position=position)
        for position, entry in enumerate(entries)
        if is_orphaned(entries, position)
    ]


def orphaned_entry_ids(entries: Sequence[PlanEntry]) -> Set[str]:
    return {finding.entry_id for finding in find_orphaned_folds(entries)}


def is_submittable(entries: Sequence[PlanEntry]) -> bool:
    """A plan can be executed when it is non-empty and has no orphaned folds."""
    return bool(entries) and not find_orphaned_folds(entries)


__all__ = ["find_orphaned_folds", "is_orphaned", "is_submittable", "orphaned_entry_ids"]
