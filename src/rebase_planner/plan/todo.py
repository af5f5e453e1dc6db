"""Serialise plans into the instruction text consumed by ``git rebase -i``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Sequence

from .model import PlanError
from .schema import PlanEntry, RebaseAction

ACTION_KEYWORDS: Mapping[RebaseAction, str] = {
    RebaseAction.KEEP: "pick",
    RebaseAction.REWORD: "reword",
    RebaseAction.EDIT: "edit",
    RebaseAction.FOLD_KEEP_MESSAGE: "squash",
    RebaseAction.FOLD_DISCARD_MESSAGE: "fixup",
    RebaseAction.REMOVE: "drop",
}

_KEYWORD_ACTIONS: Dict[str, RebaseAction] = {keyword: action for action, keyword in ACTION_KEYWORDS.items()}
_KEYWORD_ACTIONS.update({keyword[0]: action for action, keyword in ACTION_KEYWORDS.items()})


@dataclass(slots=True)
class RewriteRequest:
    """Everything the rewrite backend needs to replay a plan.

    ``messages`` maps abbreviated commit ids of reworded entries to their new
    message; the instruction text itself only carries the original summaries.
    """

    instructions: str
    messages: Dict[str, str] = field(default_factory=dict)


def action_keyword(action: RebaseAction) -> str:
    return ACTION_KEYWORDS[RebaseAction(action)]


def parse_action_keyword(keyword: str) -> RebaseAction:
    """Map an instruction keyword (or its one-letter form) back to an action."""
    action = _KEYWORD_ACTIONS.get(keyword.strip().lower())
    if action is None:
        raise PlanError(f"Unknown rebase action: {keyword!r}")
    return action


def serialize_entry(entry: PlanEntry) -> str:
    return f"{action_keyword(entry.action)} {entry.short_id} {entry.summary}"


def serialize_plan(entries: Sequence[PlanEntry]) -> str:
    """Return one instruction line per entry, in plan order.

    Removed entries are emitted as ``drop`` lines rather than omitted.
    """
    return "\n".join(serialize_entry(entry) for entry in entries)


def collect_reword_messages(entries: Sequence[PlanEntry]) -> Dict[str, str]:
    return {
        entry.short_id: entry.reword_text
        for entry in entries
        if entry.action is RebaseAction.REWORD and entry.reword_text is not None
    }


def build_rewrite_request(entries: Sequence[PlanEntry]) -> RewriteRequest:
    return RewriteRequest(
        instructions=serialize_plan(entries),
        messages=collect_reword_messages(entries),
    )


__all__ = [
    "ACTION_KEYWORDS",
    "RewriteRequest",
    "action_keyword",
    "build_rewrite_request",
    "collect_reword_messages",
    "parse_action_keyword",
    "serialize_entry",
    "serialize_plan",
]
