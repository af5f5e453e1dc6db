"""Minimal git helpers
The helpers below provide just enough structure to list the commits of a
rebase range, check the working tree and drive ``git rebase -i`` without an
interactive editor.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Mapping, Sequence, Set

from ..plan.schema import CommitSnapshot

LOGGER = logging.getLogger(__name__)

_FIELD_SEPARATOR = "\x1f"
_RECORD_SEPARATOR = "\x1e"
_LOG_FORMAT = "%H%x1f%h%x1f%an%x1f%at%x1f%s%x1e"


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


class GitTimeoutError(GitError):
    """Raised when a git command exceeds its time budget and was killed."""


@dataclass(slots=True)
class RebaseRun:
    """Outcome of a non-interactive ``git rebase -i`` invocation."""

    returncode: int
    stdout: str
    stderr: str
    in_progress: bool
    conflicted_paths: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stderr.strip() or self.stdout.strip()


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def initialise(
        cls,
        root: Path | str,
        *,
        user_name: str = "Rebase Planner",
        user_email: str = "planner@example.com",
    ) -> "GitRepository":
        """Initialise an empty git repository at ``root`` with a local identity."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)
        result = subprocess.run(["git", "init"], cwd=path, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git init failed: {message}")
        repo = cls(path)
        repo.git("config", "user.name", user_name)
        repo.git("config", "user.email", user_email)
        return repo

    # ------------------------------------------------------------------ git IO
    def _run_git(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)
        try:
            process = subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=False,
                check=False,
                env=process_env,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as error:
            raise GitTimeoutError(f"git {' '.join(args)} timed out after {timeout:g} seconds") from error
        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git {' '.join(args)} failed: {message}")
        return result

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return self._run_git(list(args), check=check)

    @property
    def git_dir(self) -> Path:
        """Return the absolute path of the repository's git directory."""

        result = self._run_git(["rev-parse", "--git-dir"], check=True)
        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = self.root / git_dir
        return git_dir.resolve()

    # ------------------------------------------------------------------ refs
    def head(self) -> str | None:
        """Return the full id of ``HEAD`` or ``None`` for an unborn branch."""

        result = self._run_git(["rev-parse", "--verify", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def resolve_commit(self, ref: str) -> str:
        """Return the full commit id ``ref`` points at."""

        result = self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        commit = result.stdout.strip()
        if result.returncode != 0 or not commit:
            raise GitError(f"Unknown revision: {ref}")
        return commit

    # ------------------------------------------------------------- repo status
    def _status_entries(self) -> List[tuple[str, Path]]:
        result = self._run_git(["status", "--porcelain"], check=True)
        entries: List[tuple[str, Path]] = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            status = line[:2]
            raw_path = line[3:]
            if status[0] in {"R", "C"} and " -> " in raw_path:
                raw_path = raw_path.split(" -> ", 1)[1]
            status_clean = status.strip() or status
            entries.append((status_clean, Path(raw_path.strip())))
        return entries

    def working_tree_changes(self, *, include_untracked: bool = False) -> List[Path]:
        """Return the set of paths with pending modifications."""

        paths: Set[Path] = set()
        for status, path in self._status_entries():
            if status == "??" and not include_untracked:
                continue
            paths.add(path)
        return sorted(paths, key=lambda item: item.as_posix())

    def is_clean(self, *, include_untracked: bool = False) -> bool:
        """Return ``True`` when the working tree has no pending changes."""

        return not self.working_tree_changes(include_untracked=include_untracked)

    def ensure_clean(self, *, include_untracked: bool = False) -> None:
        """Raise :class:`GitError` if the working tree is not clean."""

        if not self.is_clean(include_untracked=include_untracked):
            raise GitError("Working tree has pending changes.")

    # ------------------------------------------------------------ rebase range
    def list_rebase_commits(self, onto: str) -> List[CommitSnapshot]:
        """Return the commits between ``onto`` and ``HEAD``, oldest first.

        Ranges that contain merge commits are rejected because the rewrite
        instructions describe a linear history only.
        """

        self.resolve_commit(onto)
        revision_range = f"{onto}..HEAD"

        merges = self._run_git(["rev-list", "--min-parents=2", "--count", revision_range], check=True)
        if int(merges.stdout.strip() or "0"):
            raise GitError(f"Range {revision_range} contains merge commits; only linear history can be planned.")

        result = self._run_git(
            ["log", "--reverse", f"--format={_LOG_FORMAT}", revision_range],
            check=True,
        )
        commits: List[CommitSnapshot] = []
        for record in result.stdout.split(_RECORD_SEPARATOR):
            record = record.strip("\n")
            if not record:
                continue
            full_id, short_id, author, timestamp, summary = record.split(_FIELD_SEPARATOR, 4)
            commits.append(
                CommitSnapshot(
                    id=full_id,
                    short_id=short_id,
                    summary=summary,
                    author=author,
                    timestamp=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
                )
            )
        return commits

    # ------------------------------------------------------------------ rebase
    def rebase_in_progress(self) -> bool:
        """Return ``True`` while a rebase is stopped (edit, conflict, failure)."""

        git_dir = self.git_dir
        return (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists()

    def conflicted_paths(self) -> List[str]:
        """Return the paths with unresolved merge conflicts."""

        result = self._run_git(["diff", "--name-only", "--diff-filter=U"], check=False)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def abort_rebase(self) -> None:
        """Abort the in-progress rebase, restoring the original branch."""

        result = self._run_git(["rebase", "--abort"], check=False)
        if result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git rebase --abort failed: {message}")

    def run_interactive_rebase(
        self,
        onto: str,
        todo: str,
        *,
        autostash: bool = False,
        timeout: float | None = None,
    ) -> RebaseRun:
        """Replay ``todo`` onto ``onto`` with ``git rebase -i``.

        The prepared todo replaces the one git generates and squash messages are
        accepted as combined by git.  A killed (timed out) rebase is aborted
        before :class:`GitTimeoutError` propagates.
        """

        with tempfile.TemporaryDirectory(prefix="rebase-planner-") as scratch:
            todo_path = Path(scratch) / "git-rebase-todo"
            todo_path.write_text(todo.rstrip("\n") + "\n", encoding="utf-8")
            env = {
                "GIT_SEQUENCE_EDITOR": f"cp {shlex.quote(todo_path.as_posix())}",
                "GIT_EDITOR": "true",
            }
            args: List[str] = ["rebase", "--interactive", "--no-autosquash"]
            args.append("--autostash" if autostash else "--no-autostash")
            args.append(onto)

            LOGGER.info("Running git %s", " ".join(args))
            try:
                result = self._run_git(args, check=False, env=env, timeout=timeout)
            except GitTimeoutError:
                if self.rebase_in_progress():
                    LOGGER.warning("Aborting rebase onto %s after timeout", onto)
                    self.abort_rebase()
                raise

        in_progress = self.rebase_in_progress()
        conflicted = tuple(self.conflicted_paths()) if in_progress else ()
        return RebaseRun(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            in_progress=in_progress,
            conflicted_paths=conflicted,
        )


__all__ = ["GitError", "GitRepository", "GitTimeoutError", "RebaseRun"]
