"""Typed records shared by the rebase planning engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class RecordModel(BaseModel):
    """Base Pydantic model with strict, immutable field handling."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class RebaseAction(str, Enum):
    """What happens to a commit when the plan is replayed."""

    KEEP = "keep"
    REWORD = "reword"
    EDIT = "edit"
    FOLD_KEEP_MESSAGE = "fold_keep_message"
    FOLD_DISCARD_MESSAGE = "fold_discard_message"
    REMOVE = "remove"

    @property
    def is_fold(self) -> bool:
        return self in FOLD_ACTIONS

    @property
    def opens_group(self) -> bool:
        """Return ``True`` for actions that produce a commit of their own."""
        return self in HEAD_ACTIONS


FOLD_ACTIONS = frozenset({RebaseAction.FOLD_KEEP_MESSAGE, RebaseAction.FOLD_DISCARD_MESSAGE})
HEAD_ACTIONS = frozenset({RebaseAction.KEEP, RebaseAction.REWORD, RebaseAction.EDIT})


class FindingKind(str, Enum):
    """Structural problems reported by the validator."""

    ORPHANED_FOLD = "orphaned_fold"


class CommitSnapshot(RecordModel):
    """Commit as listed by the backend when the plan is opened."""

    id: str
    short_id: str
    summary: str
    author: str = ""
    timestamp: datetime = Field(default_factory=utc_now)


class PlanEntry(RecordModel):
    """One commit of the plan together with the action chosen for it."""

    commit: CommitSnapshot
    action: RebaseAction = RebaseAction.KEEP
    reword_text: Optional[str] = None

    @property
    def id(self) -> str:
        return self.commit.id

    @property
    def short_id(self) -> str:
        return self.commit.short_id

    @property
    def summary(self) -> str:
        return self.commit.summary

    @property
    def message(self) -> str:
        """Message the commit carries after the rewrite."""
        if self.action is RebaseAction.REWORD and self.reword_text:
            return self.reword_text
        return self.commit.summary


class ValidationFinding(RecordModel):
    """Associates a plan entry with a structural error."""

    entry_id: str
    kind: FindingKind
    position: int


class PreviewGroup(RecordModel):
    """Commit produced by the rewrite, with the entries folded into it.

    ``head`` is ``None`` for error markers: folds that have nothing valid to
    collapse into.
    """

    head: Optional[PlanEntry] = None
    folded: List[PlanEntry] = Field(default_factory=list)
    errored: bool = False

    @property
    def message(self) -> str:
        return self.head.message if self.head is not None else ""

    @property
    def summary(self) -> str:
        message = self.message
        return message.split("\n", 1)[0] if message else ""

    @property
    def folded_count(self) -> int:
        return len(self.folded)

    @property
    def folded_ids(self) -> List[str]:
        return [entry.short_id for entry in self.folded]

    @property
    def is_error_marker(self) -> bool:
        return self.head is None


class PlanStats(RecordModel):
    """Aggregate counts shown next to the preview."""

    removed: int = 0
    reworded: int = 0
    folded: int = 0
    kept: int = 0
    resulting: int = 0


__all__ = [
    "CommitSnapshot",
    "FOLD_ACTIONS",
    "FindingKind",
    "HEAD_ACTIONS",
    "PlanEntry",
    "PlanStats",
    "PreviewGroup",
    "RebaseAction",
    "RecordModel",
    "ValidationFinding",
    "utc_now",
]
