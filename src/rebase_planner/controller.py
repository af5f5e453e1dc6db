"""State machine that drives plan edits and the asynchronous rewrite call."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .events import RepositoryChanged, RepositoryEvents, repository_events
from .plan import autosquash, model, preview, todo, validation
from .plan.schema import PlanEntry, PlanStats, PreviewGroup, RebaseAction, ValidationFinding
from .tools.rewrite import RewriteBackend, RewriteError

LOGGER = logging.getLogger(__name__)


class ControllerState(str, Enum):
    """Lifecycle states of an open rebase plan."""

    EDITING = "EDITING"
    SUBMITTING = "SUBMITTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ControllerStateError(RuntimeError):
    """Raised when an operation is not allowed in the controller's current state."""


class ExecutionController:
    """Own one plan while it is edited and submitted.

    Edits are accepted only while :attr:`state` is ``EDITING``.  Submitting
    serialises the plan, awaits the backend and either finishes in
    ``SUCCEEDED`` (publishing :class:`RepositoryChanged` and closing) or
    records the backend's message and returns to ``EDITING`` with the plan
    untouched.
    """

    def __init__(
        self,
        backend: RewriteBackend,
        repo_path: Path | str,
        onto: str,
        entries: Iterable[PlanEntry] = (),
        *,
        events: RepositoryEvents | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.backend = backend
        self.repo_path = Path(repo_path)
        self.onto = onto
        self.events = events if events is not None else repository_events
        self.on_close = on_close
        self._entries: model.Plan = tuple(entries)
        self._state = ControllerState.EDITING
        self._error: Optional[str] = None
        self._closed = False
        self.transitions: List[ControllerState] = [ControllerState.EDITING]

    @classmethod
    async def open(
        cls,
        backend: RewriteBackend,
        repo_path: Path | str,
        onto: str,
        *,
        events: RepositoryEvents | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> "ExecutionController":
        """Load the commits onto ``onto`` and return a controller in ``EDITING``."""
        commits = await backend.list_commits(repo_path, onto)
        LOGGER.debug("Opened plan with %d commit(s) onto %s", len(commits), onto)
        return cls(
            backend,
            repo_path,
            onto,
            model.create_plan(commits),
            events=events,
            on_close=on_close,
        )

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def entries(self) -> model.Plan:
        return self._entries

    @property
    def error(self) -> Optional[str]:
        """Message of the last failed submission, cleared on the next attempt."""
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    def _transition(self, state: ControllerState) -> None:
        LOGGER.debug("Controller %s -> %s", self._state.value, state.value)
        self._state = state
        self.transitions.append(state)

    def _require_editing(self, operation: str) -> None:
        if self._state is not ControllerState.EDITING:
            raise ControllerStateError(f"Cannot {operation} while {self._state.value}.")

    def _close(self) -> None:
        self._closed = True
        if self.on_close is not None:
            self.on_close()

    # ------------------------------------------------------------------ edits
    def set_action(self, entry_id: str, action: RebaseAction) -> None:
        self._require_editing("change an action")
        self._entries = model.set_action(self._entries, entry_id, action)

    def set_reword_text(self, entry_id: str, text: str) -> None:
        self._require_editing("reword a commit")
        self._entries = model.set_reword_text(self._entries, entry_id, text)

    def reorder(self, entry_id: str, new_index: int) -> None:
        self._require_editing("reorder commits")
        self._entries = model.reorder(self._entries, entry_id, new_index)

    def apply_autosquash(self) -> None:
        self._require_editing("apply autosquash")
        self._entries = model.apply_autosquash(self._entries)

    def replace_entries(self, entries: Sequence[PlanEntry]) -> None:
        """Swap in an edited plan holding exactly the same commits."""
        self._require_editing("replace the plan")
        if sorted(entry.id for entry in entries) != sorted(entry.id for entry in self._entries):
            raise model.PlanError("Replacement plan must contain the same commits.")
        self._entries = tuple(entries)

    # ---------------------------------------------------------------- queries
    def findings(self) -> List[ValidationFinding]:
        return validation.find_orphaned_folds(self._entries)

    def orphaned_ids(self) -> Set[str]:
        return validation.orphaned_entry_ids(self._entries)

    @property
    def can_submit(self) -> bool:
        return self._state is ControllerState.EDITING and validation.is_submittable(self._entries)

    @property
    def has_pending_autosquash(self) -> bool:
        return autosquash.has_pending_autosquash(self._entries)

    def preview(self) -> List[PreviewGroup]:
        return preview.build_preview(self._entries)

    def stats(self) -> PlanStats:
        return preview.compute_stats(self._entries)

    def instructions(self) -> str:
        return todo.serialize_plan(self._entries)

    # ------------------------------------------------------------- lifecycle
    async def submit(self) -> bool:
        """Execute the plan; return ``True`` once the backend succeeded."""
        self._require_editing("submit")
        if not self.can_submit:
            raise ControllerStateError("Plan has orphaned fold actions and cannot be submitted.")

        request = todo.build_rewrite_request(self._entries)
        self._error = None
        self._transition(ControllerState.SUBMITTING)
        try:
            await self.backend.execute_rewrite(self.repo_path, self.onto, request)
        except RewriteError as error:
            LOGGER.warning("Rewrite onto %s failed: %s", self.onto, error.message)
            self._error = error.message
            self._transition(ControllerState.FAILED)
            self._transition(ControllerState.EDITING)
            return False
        except BaseException:
            self._transition(ControllerState.EDITING)
            raise

        self._transition(ControllerState.SUCCEEDED)
        try:
            self.events.publish(RepositoryChanged(repo_path=self.repo_path, onto=self.onto))
        finally:
            self._close()
        return True

    def cancel(self) -> None:
        """Discard the plan; only allowed while editing."""
        self._require_editing("cancel")
        self._transition(ControllerState.CANCELLED)
        self._close()


__all__ = ["ControllerState", "ControllerStateError", "ExecutionController"]
