"""Interactive rebase planner: plan, validate, preview and run history rewrites."""

from .controller import ControllerState, ControllerStateError, ExecutionController
from .events import RepositoryChanged, RepositoryEvents, repository_events
from .plan import CommitSnapshot, PlanEntry, PlanError, RebaseAction, UnknownEntryError

__version__ = "0.1.0"

__all__ = [
    "CommitSnapshot",
    "ControllerState",
    "ControllerStateError",
    "ExecutionController",
    "PlanEntry",
    "PlanError",
    "RebaseAction",
    "RepositoryChanged",
    "RepositoryEvents",
    "UnknownEntryError",
    "repository_events",
]
