"""Runner contract and scheme registry.

A runner executes the work behind a Task ``Resource`` asynchronously. The Task
state starts the work with :meth:`Runner.run_async`, keeps the returned runner
context in the execution record and polls it until the work is done.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from litestar_asl.exceptions import InvalidWorkflowError

__all__ = ["EVENT_TYPES", "Runner", "RunnerEvent", "RunnerFactory", "RunnerRegistry"]

EVENT_TYPES = ("create", "update", "delete")


@dataclass(frozen=True)
class RunnerEvent:
    """A status change reported by a runner's event stream.

    Events are produced on a background thread and applied on the thread that
    steps the workflow, so they carry a private copy of the runner context.

    Attributes:
        event: One of ``create``, ``update`` or ``delete``.
        runner_context: Snapshot of the runner context after the change.
    """

    event: str
    runner_context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "runner_context", dict(self.runner_context))


class Runner(ABC):
    """Base class for task execution backends.

    Subclasses implement the abstract methods. Backends able to push status
    changes set ``supports_events`` and implement :meth:`wait`.
    """

    scheme: ClassVar[str] = ""
    """The resource scheme served by the runner, e.g. ``local``."""

    supports_events: ClassVar[bool] = False
    """Whether :meth:`wait` streams events."""

    @abstractmethod
    def run_async(
        self,
        resource: str,
        env: Any = None,
        secrets: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Start work for ``resource`` without waiting for it to complete.

        Args:
            resource: The Task ``Resource`` URI.
            env: The effective task input.
            secrets: Resolved ``Credentials`` for the task, if any.
            context: The execution record as rendered by ``Context.to_dict``.

        Returns:
            The runner context used to poll the work.
        """

    def status(self, runner_context: dict[str, Any]) -> dict[str, Any]:
        """Refresh the status fields of ``runner_context`` in place."""
        return runner_context

    @abstractmethod
    def running(self, runner_context: dict[str, Any]) -> bool:
        """Whether the work is still in progress, as of the last refresh."""

    @abstractmethod
    def success(self, runner_context: dict[str, Any]) -> bool:
        """Whether the work completed successfully, as of the last refresh."""

    @abstractmethod
    def output(self, runner_context: dict[str, Any]) -> Any:
        """Return the output (or error) of finished work."""

    def cleanup(self, runner_context: dict[str, Any]) -> None:  # noqa: B027
        """Release resources held for the work. Must be idempotent and never raise."""

    def identify(self, runner_context: Mapping[str, Any]) -> Hashable:
        """Return the key used to correlate events with runner contexts."""
        return runner_context.get("id")

    def subscribe(self) -> None:  # noqa: B027
        """Start collecting events for :meth:`wait`.

        Calls are paired with :meth:`unsubscribe`. Events raised while nobody is
        subscribed may be dropped, so :meth:`status` must stay authoritative.
        """

    def unsubscribe(self) -> None:  # noqa: B027
        """Stop collecting events and wake a :meth:`wait` blocked on the stream."""

    def wait(self, timeout: float | None = None, events: Iterable[str] = EVENT_TYPES) -> Iterator[RunnerEvent]:
        """Yield events until ``timeout`` seconds pass without one or :meth:`unsubscribe` is called.

        Only called when ``supports_events`` is true.
        """
        msg = f"{type(self).__name__} does not stream events"
        raise NotImplementedError(msg)

    def validate_resource(self, resource: str) -> None:
        """Raise ValueError if ``resource`` is not served by this runner."""
        if not resource.startswith(f"{self.scheme}://"):
            msg = f"Invalid resource scheme for {type(self).__name__}: [{resource}]"
            raise ValueError(msg)


RunnerFactory = Callable[[], Runner]


class RunnerRegistry:
    """Maps resource schemes to runners.

    A scheme is bound to either a runner instance or a zero-argument factory
    that is called the first time the scheme is used.

    Example:
        >>> from litestar_asl.runners.local import LocalRunner
        >>> runners = RunnerRegistry({"local": LocalRunner})
        >>> runners.for_resource("local://double").scheme
        'local'
    """

    def __init__(self, runners: Mapping[str, Runner | RunnerFactory] | None = None) -> None:
        self._entries: dict[str, Runner | RunnerFactory] = dict(runners or {})
        self._resolved: dict[str, Runner] = {}
        self._lock = threading.Lock()

    @classmethod
    def default(cls) -> RunnerRegistry:
        """Build a registry serving the ``local`` scheme."""
        from litestar_asl.runners.local import LocalRunner

        return cls({LocalRunner.scheme: LocalRunner})

    def register(self, scheme: str, runner: Runner | RunnerFactory) -> None:
        """Bind ``scheme`` to a runner instance or factory, replacing any previous one."""
        with self._lock:
            self._entries[scheme] = runner
            self._resolved.pop(scheme, None)

    def resolve(self, scheme: str) -> Runner:
        """Return the runner for ``scheme``, calling its factory on first use.

        Raises:
            KeyError: If the scheme is not registered.
        """
        with self._lock:
            if scheme not in self._resolved:
                entry = self._entries[scheme]
                self._resolved[scheme] = entry if isinstance(entry, Runner) else entry()
            return self._resolved[scheme]

    def for_resource(self, resource: str) -> Runner:
        """Return the runner serving a Task ``Resource`` URI.

        Raises:
            InvalidWorkflowError: If the resource has no scheme or the scheme is unknown.
        """
        if not isinstance(resource, str) or "://" not in resource:
            msg = f"Invalid resource [{resource}]: expected scheme://..."
            raise InvalidWorkflowError(msg)

        scheme = resource.split("://", 1)[0]
        if scheme not in self._entries:
            msg = f"Invalid resource scheme [{scheme}] for resource [{resource}]"
            raise InvalidWorkflowError(msg)
        return self.resolve(scheme)

    @property
    def schemes(self) -> list[str]:
        return list(self._entries)

    def resolved_runners(self) -> list[Runner]:
        """Return the runners instantiated so far."""
        with self._lock:
            return list(self._resolved.values())

    def __contains__(self, scheme: object) -> bool:
        return scheme in self._entries
