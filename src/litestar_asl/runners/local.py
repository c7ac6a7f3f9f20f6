"""In-process runner for ``local://`` resources.

Task resources such as ``local://double`` name Python callables, either
registered on the runner or given as an import path
(``local://package.module:function``). Each callable runs on a thread pool and
receives ``(env, secrets)``.
"""

from __future__ import annotations

import importlib
import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any
from uuid import uuid4

from litestar_asl.core.types import ERROR_TASK_FAILED
from litestar_asl.exceptions import TaskFailedError
from litestar_asl.runners.base import EVENT_TYPES, Runner, RunnerEvent

__all__ = ["LocalRunner", "TaskFunction"]

logger = logging.getLogger(__name__)

TaskFunction = Callable[[Any, Mapping[str, Any] | None], Any]

_RUNNING = "running"
_SUCCESS = "success"
_FAILED = "failed"


class LocalRunner(Runner):
    """Runs Python callables on a ``ThreadPoolExecutor``.

    ``create`` and ``update`` events are only queued while a waiter is
    subscribed; :meth:`status` reads the future directly.

    Example:
        >>> runner = LocalRunner()
        >>> @runner.register("double")
        ... def double(env, secrets):
        ...     return {"value": env["value"] * 2}
    """

    scheme = "local"
    supports_events = True

    def __init__(self, max_workers: int | None = None, functions: Mapping[str, TaskFunction] | None = None) -> None:
        """Initialize the runner.

        Args:
            max_workers: Size of the thread pool. Defaults to the executor default.
            functions: Callables to register, keyed by resource name.
        """
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="litestar-asl")
        self._functions: dict[str, TaskFunction] = dict(functions or {})
        self._futures: dict[str, Future[Any]] = {}
        self._events: queue.Queue[RunnerEvent | None] = queue.Queue()
        self._subscribers = 0
        self._lock = threading.Lock()

    def register(self, name: str, func: TaskFunction | None = None) -> Any:
        """Register a callable under ``name``. Usable as a decorator."""

        def decorator(f: TaskFunction) -> TaskFunction:
            self._functions[name] = f
            return f

        return decorator(func) if func is not None else decorator

    def resolve(self, resource: str) -> TaskFunction:
        """Return the callable behind a ``local://`` resource.

        Raises:
            ValueError: If the resource does not name a registered or importable callable.
        """
        self.validate_resource(resource)
        name = resource[len(self.scheme) + 3 :]
        if name in self._functions:
            return self._functions[name]

        module_name, sep, attr = name.partition(":")
        if not sep:
            msg = f"No function registered for [{resource}]"
            raise ValueError(msg)
        try:
            func = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as e:
            msg = f"Cannot import [{name}] for [{resource}]: {e}"
            raise ValueError(msg) from e
        if not callable(func):
            msg = f"[{name}] is not callable"
            raise ValueError(msg)
        return func

    def run_async(
        self,
        resource: str,
        env: Any = None,
        secrets: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        runner_context: dict[str, Any] = {"id": uuid4().hex, "resource": resource}
        try:
            func = self.resolve(resource)
        except ValueError as e:
            runner_context.update(status=_FAILED, output={"Error": ERROR_TASK_FAILED, "Cause": str(e)})
            return runner_context

        future = self._executor.submit(func, env, secrets)
        with self._lock:
            self._futures[runner_context["id"]] = future
        self._publish(RunnerEvent("create", runner_context))
        runner_context["status"] = _RUNNING

        task_id = runner_context["id"]
        future.add_done_callback(lambda done: self._publish(RunnerEvent("update", self._snapshot(task_id, done))))
        logger.debug("Started local task %s for [%s]", task_id, resource)
        return runner_context

    def status(self, runner_context: dict[str, Any]) -> dict[str, Any]:
        if runner_context.get("status") != _RUNNING:
            return runner_context
        with self._lock:
            future = self._futures.get(runner_context["id"])
        if future is not None and future.done():
            runner_context.update(self._snapshot(runner_context["id"], future))
        return runner_context

    def running(self, runner_context: dict[str, Any]) -> bool:
        return runner_context.get("status") == _RUNNING

    def success(self, runner_context: dict[str, Any]) -> bool:
        return runner_context.get("status") == _SUCCESS

    def output(self, runner_context: dict[str, Any]) -> Any:
        return runner_context.get("output")

    def cleanup(self, runner_context: dict[str, Any]) -> None:
        with self._lock:
            self._futures.pop(runner_context.get("id"), None)

    def subscribe(self) -> None:
        with self._lock:
            if not self._subscribers:
                _discard(self._events)
            self._subscribers += 1

    def unsubscribe(self) -> None:
        with self._lock:
            self._subscribers = max(self._subscribers - 1, 0)
        self._events.put(None)

    def wait(self, timeout: float | None = None, events: Iterable[str] = EVENT_TYPES) -> Iterator[RunnerEvent]:
        wanted = set(events)
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                return
            if event is None:
                return
            if event.event in wanted:
                yield event

    def shutdown(self, wait: bool = True) -> None:
        """Stop the thread pool."""
        self._executor.shutdown(wait=wait)

    def _publish(self, event: RunnerEvent) -> None:
        with self._lock:
            if self._subscribers:
                self._events.put(event)

    @staticmethod
    def _snapshot(task_id: str, future: Future[Any]) -> dict[str, Any]:
        error = future.exception()
        if error is None:
            return {"id": task_id, "status": _SUCCESS, "output": future.result()}
        if isinstance(error, TaskFailedError):
            output = {"Error": error.error}
            if error.cause is not None:
                output["Cause"] = error.cause
        else:
            output = {"Error": type(error).__name__, "Cause": str(error)}
        return {"id": task_id, "status": _FAILED, "output": output}


def _discard(events: queue.Queue[RunnerEvent | None]) -> None:
    while True:
        try:
            events.get_nowait()
        except queue.Empty:
            return
