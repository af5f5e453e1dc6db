"""Process-wide notifications about repository changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RepositoryChanged:
    """Emitted after a rewrite changed the history of ``repo_path``."""

    repo_path: Path
    onto: str


Subscriber = Callable[[RepositoryChanged], None]


class RepositoryEvents:
    """Synchronous fan-out of :class:`RepositoryChanged` notifications."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: RepositoryChanged) -> int:
        """Deliver ``event`` to every subscriber and return how many received it.

        A failing subscriber is logged and skipped; the others still receive the event.
        """
        subscribers = list(self._subscribers)
        delivered = 0
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                LOGGER.exception("Repository change subscriber %r failed", callback)
                continue
            delivered += 1
        LOGGER.debug(
            "Published repository change for %s to %d/%d subscriber(s)",
            event.repo_path,
            delivered,
            len(subscribers),
        )
        return delivered


repository_events = RepositoryEvents()


__all__ = ["RepositoryChanged", "RepositoryEvents", "Subscriber", "repository_events"]
