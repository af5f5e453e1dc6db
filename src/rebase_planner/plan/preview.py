"""Live preview of the commits a plan produces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .schema import PlanEntry, PlanStats, PreviewGroup, RebaseAction
from .validation import is_orphaned


@dataclass(slots=True)
class _OpenGroup:
    head: Optional[PlanEntry]
    folded: List[PlanEntry] = field(default_factory=list)
    errored: bool = False

    def close(self) -> PreviewGroup:
        return PreviewGroup(head=self.head, folded=list(self.folded), errored=self.errored)


def build_preview(entries: Sequence[PlanEntry]) -> List[PreviewGroup]:
    """Group entries into the commits that exist after the rewrite.

    Keep, reword and edit entries open a group; folds extend the open group.
    Removed entries close the open group and do not appear in the preview.
    An orphaned fold opens a headless error group that later folds extend.
    """
    groups: List[PreviewGroup] = []
    current: Optional[_OpenGroup] = None

    for position, entry in enumerate(entries):
        if entry.action.opens_group:
            if current is not None:
                groups.append(current.close())
            current = _OpenGroup(head=entry)
        elif entry.action.is_fold:
            if current is None or is_orphaned(entries, position):
                if current is not None:
                    groups.append(current.close())
                current = _OpenGroup(head=None, errored=True)
            current.folded.append(entry)
        else:
            if current is not None:
                groups.append(current.close())
            current = None

    if current is not None:
        groups.append(current.close())
    return groups


def compute_stats(entries: Sequence[PlanEntry]) -> PlanStats:
    """Aggregate the plan in a single pass; ``resulting`` is the number of headed preview groups."""
    removed = reworded = folded = kept = 0
    for entry in entries:
        if entry.action is RebaseAction.REMOVE:
            removed += 1
        elif entry.action.is_fold:
            folded += 1
        else:
            kept += 1
            if entry.action is RebaseAction.REWORD:
                reworded += 1

    # Every kept entry heads exactly one preview group; error markers have no head.
    return PlanStats(
        removed=removed,
        reworded=reworded,
        folded=folded,
        kept=kept,
        resulting=kept,
    )


__all__ = ["build_preview", "compute_stats"]
