"""YAML plan files describing the desired order and action of each commit."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from .plan import model
from .plan.schema import PlanEntry, RebaseAction
from .plan.todo import action_keyword, parse_action_keyword


class PlanFileError(model.PlanError):
    """Raised when a plan file cannot be parsed or does not match the commits."""


class PlanFileItem(BaseModel):
    """Single commit line of a plan file."""

    model_config = ConfigDict(extra="forbid")

    commit: str
    action: str = "pick"
    message: Optional[str] = None
    summary: Optional[str] = None  # informational only


def parse_plan_items(data: Any) -> List[PlanFileItem]:
    """Validate decoded YAML (a list, or a mapping with ``commits``)."""
    if isinstance(data, dict):
        data = data.get("commits")
    if not isinstance(data, list):
        raise PlanFileError("Plan file must contain a list of commits.")
    try:
        return [PlanFileItem.model_validate(item) for item in data]
    except ValidationError as error:
        raise PlanFileError(f"Invalid plan file entry: {error}") from error


def load_plan_file(path: Path) -> List[PlanFileItem]:
    if not path.exists():
        raise PlanFileError(f"Plan file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as error:
        raise PlanFileError(f"Failed to parse plan file {path}: {error}") from error
    return parse_plan_items(data)


def _resolve(entries: Sequence[PlanEntry], ref: str) -> PlanEntry:
    ref = ref.strip()
    matches = [entry for entry in entries if ref and (entry.id.startswith(ref) or entry.short_id == ref)]
    if not matches:
        raise PlanFileError(f"Commit {ref!r} is not part of the plan.")
    if len(matches) > 1:
        raise PlanFileError(f"Commit {ref!r} is ambiguous.")
    return matches[0]


def apply_plan_file(entries: Sequence[PlanEntry], items: Sequence[PlanFileItem]) -> model.Plan:
    """Reorder ``entries`` and assign actions as listed in ``items``.

    Every commit of the plan must be listed exactly once.
    """
    resolved: List[tuple[PlanFileItem, PlanEntry]] = []
    seen: set[str] = set()
    for item in items:
        entry = _resolve(entries, item.commit)
        if entry.id in seen:
            raise PlanFileError(f"Commit {entry.short_id} is listed more than once.")
        seen.add(entry.id)
        resolved.append((item, entry))

    missing = [entry.short_id for entry in entries if entry.id not in seen]
    if missing:
        raise PlanFileError(f"Plan file does not mention: {', '.join(missing)}")

    plan = tuple(entries)
    for position, (_, entry) in enumerate(resolved):
        plan = model.reorder(plan, entry.id, position)

    for item, entry in resolved:
        action = parse_action_keyword(item.action)
        plan = model.set_action(plan, entry.id, action)
        if item.message is None:
            continue
        if action is not RebaseAction.REWORD:
            raise PlanFileError(f"Commit {entry.short_id}: a message requires the reword action.")
        plan = model.set_reword_text(plan, entry.id, item.message)
    return plan


def dump_plan_file(entries: Sequence[PlanEntry]) -> str:
    """Render ``entries`` as a plan file users can edit and feed back."""
    items = []
    for entry in entries:
        item: dict[str, Any] = {
            "commit": entry.short_id,
            "action": action_keyword(entry.action),
            "summary": entry.summary,
        }
        if entry.action is RebaseAction.REWORD and entry.reword_text is not None:
            item["message"] = entry.reword_text
        items.append(item)
    return yaml.safe_dump(items, sort_keys=False, allow_unicode=True)


__all__ = [
    "PlanFileError",
    "PlanFileItem",
    "apply_plan_file",
    "dump_plan_file",
    "load_plan_file",
    "parse_plan_items",
]
