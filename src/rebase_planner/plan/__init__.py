"""Planning engine for interactive history rewrites."""

from .autosquash import (
    apply_autosquash,
    find_autosquash_markers,
    has_pending_autosquash,
    parse_autosquash_marker,
)
from .model import (
    Plan,
    PlanError,
    UnknownEntryError,
    create_plan,
    find_entry,
    reorder,
    set_action,
    set_reword_text,
)
from .preview import build_preview, compute_stats
from .schema import (
    CommitSnapshot,
    FindingKind,
    PlanEntry,
    PlanStats,
    PreviewGroup,
    RebaseAction,
    ValidationFinding,
)
from .todo import RewriteRequest, build_rewrite_request, parse_action_keyword, serialize_plan
from .validation import find_orphaned_folds, is_submittable, orphaned_entry_ids

__all__ = [
    "CommitSnapshot",
    "FindingKind",
    "Plan",
    "PlanEntry",
    "PlanError",
    "PlanStats",
    "PreviewGroup",
    "RebaseAction",
    "RewriteRequest",
    "UnknownEntryError",
    "ValidationFinding",
    "apply_autosquash",
    "build_preview",
    "build_rewrite_request",
    "compute_stats",
    "create_plan",
    "find_autosquash_markers",
    "find_entry",
    "find_orphaned_folds",
    "has_pending_autosquash",
    "is_submittable",
    "orphaned_entry_ids",
    "parse_action_keyword",
    "parse_autosquash_marker",
    "reorder",
    "serialize_plan",
    "set_action",
    "set_reword_text",
]
