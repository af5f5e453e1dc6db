"""Detect ``fixup!``/``squash!`` commits and move them next to their targets."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from .schema import PlanEntry, RebaseAction

LOGGER = logging.getLogger(__name__)

AUTOSQUASH_PATTERN: Pattern[str] = re.compile(r"^(?P<kind>fixup|squash)! (?P<target>.+)$")

_MARKER_ACTIONS = {
    "fixup": RebaseAction.FOLD_DISCARD_MESSAGE,
    "squash": RebaseAction.FOLD_KEEP_MESSAGE,
}


@dataclass(slots=True)
class AutosquashMarker:
    """Parsed ``<kind>! <target>`` prefix of a commit summary."""

    kind: str
    target: str

    @property
    def action(self) -> RebaseAction:
        return _MARKER_ACTIONS[self.kind]


def parse_autosquash_marker(summary: str) -> Optional[AutosquashMarker]:
    """Return the marker carried by ``summary`` or ``None``."""
    match = AUTOSQUASH_PATTERN.match(summary)
    if match is None:
        return None
    return AutosquashMarker(kind=match.group("kind"), target=match.group("target"))


def find_autosquash_markers(entries: Sequence[PlanEntry]) -> List[PlanEntry]:
    """Return every entry whose summary starts with ``fixup! `` or ``squash! ``."""
    return [entry for entry in entries if parse_autosquash_marker(entry.summary) is not None]


def _strip_markers(target: str) -> str:
    """Drop nested ``fixup! ``/``squash! `` prefixes (``fixup! fixup! A`` targets ``A``)."""
    marker = parse_autosquash_marker(target)
    while marker is not None:
        target = marker.target
        marker = parse_autosquash_marker(target)
    return target


def _is_candidate(entry: PlanEntry) -> bool:
    # Neither markers nor folds can be targets; autosquash never changes this set.
    return not entry.action.is_fold and parse_autosquash_marker(entry.summary) is None


def _find_target(entries: Sequence[PlanEntry], position: int, target: str) -> Optional[int]:
    target = _strip_markers(target)
    candidates = [index for index in range(position - 1, -1, -1) if _is_candidate(entries[index])]
    for index in candidates:
        if entries[index].summary == target:
            return index
    for index in candidates:
        if entries[index].summary.startswith(target):
            return index
    return None


def apply_autosquash(entries: Sequence[PlanEntry]) -> Tuple[PlanEntry, ...]:
    """Assign fold actions to marker commits and relocate them after their target.

    A marker targets the nearest earlier non-marker, non-fold entry whose
    summary equals the marker's target, else the nearest one whose summary
    starts with it.  Matched markers are lifted out of the plan and re-inserted
    after their target and the run of folds that follows it, in their original
    order.  Everything else keeps its relative order, so applying the result
    again is a no-op.  Markers without a target are left untouched.
    """
    plan = list(entries)
    attached: Dict[str, List[PlanEntry]] = {}
    matched: set[str] = set()

    for position, entry in enumerate(plan):
        marker = parse_autosquash_marker(entry.summary)
        if marker is None:
            continue
        target_index = _find_target(plan, position, marker.target)
        if target_index is None:
            LOGGER.debug("No autosquash target for %s (%r)", entry.short_id, marker.target)
            continue

        if entry.action is not marker.action or entry.reword_text is not None:
            entry = entry.model_copy(update={"action": marker.action, "reword_text": None})
        target = plan[target_index]
        attached.setdefault(target.id, []).append(entry)
        matched.add(entry.id)
        LOGGER.debug("Autosquash placed %s after %s as %s", entry.short_id, target.short_id, marker.action.value)

    remaining = [entry for entry in plan if entry.id not in matched]
    result: List[PlanEntry] = []
    waiting: List[PlanEntry] = []
    for index, entry in enumerate(remaining):
        result.append(entry)
        waiting.extend(attached.get(entry.id, ()))
        following = remaining[index + 1] if index + 1 < len(remaining) else None
        if waiting and (following is None or not following.action.is_fold):
            result.extend(waiting)
            waiting = []
    return tuple(result)


def has_pending_autosquash(entries: Sequence[PlanEntry]) -> bool:
    """Return ``True`` when applying autosquash would still change the plan."""
    return apply_autosquash(entries) != tuple(entries)


__all__ = [
    "AUTOSQUASH_PATTERN",
    "AutosquashMarker",
    "apply_autosquash",
    "find_autosquash_markers",
    "has_pending_autosquash",
    "parse_autosquash_marker",
]
