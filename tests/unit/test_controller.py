from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from rebase_planner.controller import ControllerState, ControllerStateError, ExecutionController
from rebase_planner.events import RepositoryChanged, RepositoryEvents
from rebase_planner.plan import CommitSnapshot, PlanError, RebaseAction, RewriteRequest, create_plan
from rebase_planner.tools.rewrite import RewriteError


class FakeBackend:
    """In-memory rewrite backend recording every request it receives."""

    def __init__(
        self,
        commits: Sequence[CommitSnapshot] = (),
        *,
        failure: Optional[BaseException] = None,
    ) -> None:
        self.commits = list(commits)
        self.failure = failure
        self.requests: List[RewriteRequest] = []
        self.gate: Optional[asyncio.Event] = None

    async def list_commits(self, repo_path: Path, onto: str) -> List[CommitSnapshot]:
        return list(self.commits)

    async def execute_rewrite(self, repo_path: Path, onto: str, request: RewriteRequest) -> None:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.failure is not None:
            raise self.failure


def _commit(short_id: str, summary: str) -> CommitSnapshot:
    return CommitSnapshot(id=short_id.ljust(40, "0"), short_id=short_id, summary=summary)


@pytest.fixture()
def events() -> RepositoryEvents:
    return RepositoryEvents()


@pytest.fixture()
def received(events: RepositoryEvents) -> List[RepositoryChanged]:
    collected: List[RepositoryChanged] = []
    events.subscribe(collected.append)
    return collected


async def _open(backend: FakeBackend, events: RepositoryEvents, **kwargs) -> ExecutionController:
    return await ExecutionController.open(backend, Path("/repo"), "main", events=events, **kwargs)


@pytest.mark.asyncio
async def test_open_lists_commits_into_a_kept_plan(events: RepositoryEvents) -> None:
    backend = FakeBackend([_commit("abc1234", "First"), _commit("def5678", "Second")])

    controller = await _open(backend, events)

    assert controller.state is ControllerState.EDITING
    assert [entry.short_id for entry in controller.entries] == ["abc1234", "def5678"]
    assert all(entry.action is RebaseAction.KEEP for entry in controller.entries)
    assert controller.can_submit


@pytest.mark.asyncio
async def test_successful_submit_publishes_change_and_closes(
    events: RepositoryEvents, received: List[RepositoryChanged]
) -> None:
    closed: List[bool] = []
    backend = FakeBackend([_commit("abc1234", "First commit"), _commit("def5678", "Second commit")])
    controller = await _open(backend, events, on_close=lambda: closed.append(True))
    controller.set_action(controller.entries[1].id, RebaseAction.FOLD_KEEP_MESSAGE)

    assert await controller.submit() is True

    assert backend.requests[0].instructions == "pick abc1234 First commit\nsquash def5678 Second commit"
    assert controller.state is ControllerState.SUCCEEDED
    assert controller.transitions == [
        ControllerState.EDITING,
        ControllerState.SUBMITTING,
        ControllerState.SUCCEEDED,
    ]
    assert controller.closed and closed == [True]
    assert received == [RepositoryChanged(repo_path=Path("/repo"), onto="main")]


@pytest.mark.asyncio
async def test_backend_failure_returns_to_editing_with_plan_intact(
    events: RepositoryEvents, received: List[RepositoryChanged]
) -> None:
    backend = FakeBackend(
        [_commit("a1", "A"), _commit("b2", "B")],
        failure=RewriteError("conflicts detected", conflicted_paths=["shared.txt"]),
    )
    controller = await _open(backend, events)
    controller.set_action(controller.entries[0].id, RebaseAction.REWORD)
    controller.set_reword_text(controller.entries[0].id, "A, better")
    before = controller.entries

    assert await controller.submit() is False

    assert controller.state is ControllerState.EDITING
    assert controller.error == "conflicts detected"
    assert controller.entries == before
    assert ControllerState.FAILED in controller.transitions
    assert controller.transitions[-1] is ControllerState.EDITING
    assert not controller.closed
    assert received == []
    assert backend.requests[0].messages == {"a1": "A, better"}


@pytest.mark.asyncio
async def test_failed_submit_can_be_edited_and_retried(events: RepositoryEvents) -> None:
    backend = FakeBackend([_commit("a1", "A"), _commit("b2", "B")], failure=RewriteError("boom"))
    controller = await _open(backend, events)

    assert await controller.submit() is False
    backend.failure = None
    controller.set_action(controller.entries[1].id, RebaseAction.REMOVE)

    assert await controller.submit() is True
    assert controller.error is None
    assert backend.requests[-1].instructions == "pick a1 A\ndrop b2 B"


@pytest.mark.asyncio
async def test_orphaned_fold_blocks_submission(events: RepositoryEvents) -> None:
    backend = FakeBackend([_commit("abc123", "A"), _commit("def456", "B")])
    controller = await _open(backend, events)
    controller.set_action(controller.entries[0].id, RebaseAction.REMOVE)
    controller.set_action(controller.entries[1].id, RebaseAction.FOLD_DISCARD_MESSAGE)

    assert controller.orphaned_ids() == {controller.entries[1].id}
    assert not controller.can_submit
    with pytest.raises(ControllerStateError):
        await controller.submit()
    assert backend.requests == []
    assert controller.state is ControllerState.EDITING


@pytest.mark.asyncio
async def test_edits_are_rejected_while_submitting(events: RepositoryEvents) -> None:
    backend = FakeBackend([_commit("a1", "A"), _commit("b2", "B")])
    backend.gate = asyncio.Event()
    controller = await _open(backend, events)

    task = asyncio.create_task(controller.submit())
    await asyncio.sleep(0)
    assert controller.state is ControllerState.SUBMITTING
    assert not controller.can_submit

    entry_id = controller.entries[0].id
    with pytest.raises(ControllerStateError):
        controller.set_action(entry_id, RebaseAction.REMOVE)
    with pytest.raises(ControllerStateError):
        controller.reorder(entry_id, 1)
    with pytest.raises(ControllerStateError):
        controller.cancel()

    backend.gate.set()
    assert await task is True


@pytest.mark.asyncio
async def test_unexpected_backend_error_restores_editing_and_propagates(events: RepositoryEvents) -> None:
    backend = FakeBackend([_commit("a1", "A")], failure=ValueError("unexpected"))
    controller = await _open(backend, events)

    with pytest.raises(ValueError):
        await controller.submit()
    assert controller.state is ControllerState.EDITING


@pytest.mark.asyncio
async def test_autosquash_through_controller(events: RepositoryEvents) -> None:
    backend = FakeBackend(
        [
            _commit("abc1234", "Feature A"),
            _commit("def1234", "Feature B"),
            _commit("ghi1234", "squash! Feature A"),
            _commit("jkl1234", "fixup! Feature B"),
        ]
    )
    controller = await _open(backend, events)

    assert controller.has_pending_autosquash
    controller.apply_autosquash()

    assert not controller.has_pending_autosquash
    assert controller.instructions() == (
        "pick abc1234 Feature A\n"
        "squash ghi1234 squash! Feature A\n"
        "pick def1234 Feature B\n"
        "fixup jkl1234 fixup! Feature B"
    )
    assert controller.stats().resulting == 2
    assert [group.folded_count for group in controller.preview()] == [1, 1]


def test_cancel_closes_without_events(events: RepositoryEvents, received: List[RepositoryChanged]) -> None:
    controller = ExecutionController(FakeBackend(), "/repo", "main", events=events)

    controller.cancel()

    assert controller.state is ControllerState.CANCELLED
    assert controller.closed
    assert received == []
    with pytest.raises(ControllerStateError):
        controller.apply_autosquash()


def test_replace_entries_requires_the_same_commits(events: RepositoryEvents) -> None:
    plan = create_plan([_commit("a1", "A"), _commit("b2", "B")])
    controller = ExecutionController(FakeBackend(), "/repo", "main", plan, events=events)

    controller.replace_entries(tuple(reversed(plan)))
    assert [entry.short_id for entry in controller.entries] == ["b2", "a1"]

    with pytest.raises(PlanError):
        controller.replace_entries(plan[:1])


@pytest.mark.asyncio
async def test_failing_subscriber_still_closes_the_controller(events: RepositoryEvents) -> None:
    def _broken(event: RepositoryChanged) -> None:
        raise RuntimeError("subscriber crashed")

    received: List[RepositoryChanged] = []
    events.subscribe(_broken)
    events.subscribe(received.append)
    closed: List[bool] = []
    backend = FakeBackend([_commit("a1", "A")])
    controller = await _open(backend, events, on_close=lambda: closed.append(True))

    assert await controller.submit() is True

    assert controller.state is ControllerState.SUCCEEDED
    assert controller.closed and closed == [True]
    assert received == [RepositoryChanged(repo_path=Path("/repo"), onto="main")]
