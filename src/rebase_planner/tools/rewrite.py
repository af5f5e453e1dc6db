"""Backend that lists rebase ranges and executes rewrite plans with git."""

from __future__ import annotations

import asyncio
import logging
import shlex
import shutil
from pathlib import Path
from typing import List, Mapping, Protocol, Sequence

from ..plan.schema import CommitSnapshot
from ..plan.todo import RewriteRequest
from .vcs import GitError, GitRepository, GitTimeoutError

LOGGER = logging.getLogger(__name__)

MESSAGE_DIR_NAME = "rebase-planner"


class RewriteError(RuntimeError):
    """Raised when the backend rejects or fails to execute a rewrite plan."""

    def __init__(self, message: str, *, conflicted_paths: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.conflicted_paths: List[str] = list(conflicted_paths)


class RewriteBackend(Protocol):
    """Operations the execution controller consumes from the backend."""

    async def list_commits(self, repo_path: Path | str, onto: str) -> List[CommitSnapshot]:
        ...

    async def execute_rewrite(self, repo_path: Path | str, onto: str, request: RewriteRequest) -> None:
        ...


def expand_reword_instructions(
    instructions: str,
    messages: Mapping[str, str],
    message_dir: Path,
) -> str:
    """Turn ``reword`` lines into ``pick`` plus an amending ``exec`` line.

    Each new message is written to ``message_dir`` and applied with
    ``git commit --amend -F``.  A reword whose message equals the original
    summary (or has no message) is replayed as a plain ``pick``.
    """
    lines: List[str] = []
    for line in instructions.splitlines():
        parts = line.split(" ", 2)
        if len(parts) < 2 or parts[0] != "reword":
            lines.append(line)
            continue

        short_id = parts[1]
        summary = parts[2] if len(parts) > 2 else ""
        lines.append(f"pick {short_id} {summary}".rstrip())
        message = messages.get(short_id)
        if message is None or message == summary:
            continue

        message_dir.mkdir(parents=True, exist_ok=True)
        message_path = message_dir / f"{short_id}.txt"
        message_path.write_text(message.rstrip("\n") + "\n", encoding="utf-8")
        lines.append(f"exec git commit --amend --allow-empty --quiet -F {shlex.quote(message_path.as_posix())}")
    return "\n".join(lines)


class GitRewriteBackend:
    """Run rebase plans against a local repository using the git CLI.

    Blocking git calls are executed in a worker thread so the controller's
    event loop stays responsive while a rewrite is in flight.
    """

    def __init__(
        self,
        *,
        autostash: bool = False,
        abort_on_conflict: bool = False,
        timeout: float | None = None,
    ) -> None:
        self.autostash = autostash
        self.abort_on_conflict = abort_on_conflict
        self.timeout = timeout

    async def list_commits(self, repo_path: Path | str, onto: str) -> List[CommitSnapshot]:
        return await asyncio.to_thread(self._list_commits, repo_path, onto)

    async def execute_rewrite(self, repo_path: Path | str, onto: str, request: RewriteRequest) -> None:
        await asyncio.to_thread(self._execute, repo_path, onto, request)

    def _list_commits(self, repo_path: Path | str, onto: str) -> List[CommitSnapshot]:
        repo = GitRepository(repo_path)
        commits = repo.list_rebase_commits(onto)
        LOGGER.debug("Listed %d commit(s) onto %s in %s", len(commits), onto, repo.root)
        return commits

    def _execute(self, repo_path: Path | str, onto: str, request: RewriteRequest) -> None:
        try:
            repo = GitRepository(repo_path)
            if repo.rebase_in_progress():
                raise RewriteError("A rebase is already in progress.")
            if not self.autostash:
                repo.ensure_clean()

            message_dir = repo.git_dir / MESSAGE_DIR_NAME / "messages"
            shutil.rmtree(message_dir, ignore_errors=True)
            todo = expand_reword_instructions(request.instructions, request.messages, message_dir)
            run = repo.run_interactive_rebase(onto, todo, autostash=self.autostash, timeout=self.timeout)
        except GitTimeoutError as error:
            timeout = self.timeout or 0
            raise RewriteError(f"rewrite timed out after {timeout:g} seconds") from error
        except GitError as error:
            raise RewriteError(str(error)) from error

        if run.ok:
            if run.in_progress:
                LOGGER.info("Rebase onto %s stopped for editing in %s", onto, repo.root)
            else:
                LOGGER.info("Rebase onto %s completed in %s", onto, repo.root)
            return

        if run.conflicted_paths:
            LOGGER.warning("Rebase onto %s hit conflicts in %s", onto, ", ".join(run.conflicted_paths))
            if self.abort_on_conflict:
                repo.abort_rebase()
            raise RewriteError("conflicts detected", conflicted_paths=run.conflicted_paths)

        if run.in_progress:
            repo.abort_rebase()
        raise RewriteError(run.output or f"git rebase exited with status {run.returncode}")


__all__ = [
    "GitRewriteBackend",
    "RewriteBackend",
    "RewriteError",
    "expand_reword_instructions",
]
