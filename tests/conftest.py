from __future__ import annotations

import re
import sys
import textwrap
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from rebase_planner.plan import CommitSnapshot, PlanEntry, create_plan  # noqa: E402
from rebase_planner.tools.vcs import GitRepository  # noqa: E402


def _snapshot(short_id: str, summary: str) -> CommitSnapshot:
    return CommitSnapshot(
        id=short_id.ljust(40, "0"),
        short_id=short_id,
        summary=summary,
        author="Plan Tester",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture()
def make_plan() -> Callable[..., tuple[PlanEntry, ...]]:
    """Build a plan of kept entries from ``(short_id, summary)`` pairs."""

    def _make(*commits: tuple[str, str]) -> tuple[PlanEntry, ...]:
        return create_plan(_snapshot(short_id, summary) for short_id, summary in commits)

    return _make


@dataclass(slots=True)
class HistoryRepo:
    """Fixture payload: a git repository with a ``base`` tag to rebase onto."""

    repo: GitRepository

    @property
    def root(self) -> Path:
        return self.repo.root

    def commit(self, summary: str, *, path: str | None = None, content: str | None = None) -> str:
        """Write a file and commit it; return the new commit id."""

        name = path or re.sub(r"[^a-z0-9]+", "-", summary.lower()).strip("-") + ".txt"
        target = self.root / name
        target.write_text(content if content is not None else f"{summary}\n", encoding="utf-8")
        self.repo.git("add", name)
        self.repo.git("commit", "-q", "-m", summary)
        head = self.repo.head()
        assert head is not None
        return head

    def summaries(self, onto: str = "base") -> List[str]:
        """Return the summaries of ``onto..HEAD``, oldest first."""

        result = self.repo.git("log", "--reverse", "--format=%s", f"{onto}..HEAD")
        return [line for line in result.stdout.splitlines() if line]

    def message(self, ref: str) -> str:
        return self.repo.git("log", "-1", "--format=%B", ref).stdout.strip()


@pytest.fixture()
def history_repo(tmp_path: Path) -> HistoryRepo:
    """Create a git repository with a tagged base commit and no planned commits yet."""

    repo = GitRepository.initialise(tmp_path / "history")
    (repo.root / "shared.txt").write_text(
        textwrap.dedent(
            """
            base
            """
        ).lstrip(),
        encoding="utf-8",
    )
    repo.git("add", "shared.txt")
    repo.git("commit", "-q", "-m", "Initial commit")
    repo.git("tag", "base")
    return HistoryRepo(repo=repo)
