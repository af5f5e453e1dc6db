"""Git integrations used by the rebase planner."""

from .rewrite import GitRewriteBackend, RewriteBackend, RewriteError, expand_reword_instructions
from .vcs import GitError, GitRepository, GitTimeoutError, RebaseRun

__all__ = [
    "GitError",
    "GitRepository",
    "GitRewriteBackend",
    "GitTimeoutError",
    "RebaseRun",
    "RewriteBackend",
    "RewriteError",
    "expand_reword_instructions",
]
