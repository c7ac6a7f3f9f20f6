"""Batch waiting across workflows.

:func:`wait` blocks the calling thread until one of a set of workflows can make
progress. Runner events are drained by one background thread per event-capable
runner and handed to the calling thread through a queue, so workflow contexts
are only ever touched by the thread that steps them.

Drain threads start only once the call actually has to block, and
:meth:`Runner.unsubscribe` wakes them on return. Events drained but not yet
applied are applied before returning; any event a runner drops is recovered by
:meth:`Runner.status` on the next step.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from litestar_asl.core.context import utcnow

if TYPE_CHECKING:
    from litestar_asl.engine.workflow import Workflow
    from litestar_asl.runners.base import Runner, RunnerEvent

__all__ = ["wait"]

logger = logging.getLogger(__name__)

_WAKE = None


def wait(
    workflows: Iterable[Workflow],
    timeout: float | None = None,
    on_ready: Callable[[Workflow], object] | None = None,
    poll_interval: float = 1.0,
    event_timeout: float = 1.0,
) -> list[Workflow]:
    """Wait until workflows are ready to step.

    Args:
        workflows: The workflows to watch.
        timeout: Overall limit in seconds. ``None`` waits indefinitely and ``0``
            checks once without blocking.
        on_ready: Called with every ready workflow. When given, waiting continues
            until all workflows have ended or the timeout elapses.
        poll_interval: Upper bound on each sleep. Events only shorten a sleep,
            so completions are still found through ``Runner.status`` when an
            event is dropped.
        event_timeout: How long each drain thread blocks in ``Runner.wait`` before
            checking whether it should stop.

    Returns:
        The workflows found ready when returning without ``on_ready``; otherwise
        an empty list.

    Example:
        >>> ready = wait([workflow_a, workflow_b], timeout=30)
        >>> for workflow in ready:
        ...     workflow.run_nonblock()
    """
    workflows = list(workflows)
    deadline = None if timeout is None else time.monotonic() + timeout
    events: queue.Queue[tuple[Runner, RunnerEvent] | None] = queue.Queue()
    stop = threading.Event()
    runners = _runners(workflows)
    sources = [runner for runner in runners if runner.supports_events]
    threads: list[threading.Thread] = []

    # Subscribe before the first readiness check so no completion goes unnoticed.
    for runner in sources:
        runner.subscribe()
    try:
        while True:
            ready = [workflow for workflow in workflows if workflow.step_nonblock_ready()]
            if ready:
                if on_ready is None:
                    logger.debug("%d of %d workflows ready", len(ready), len(workflows))
                    return ready
                for workflow in ready:
                    on_ready(workflow)
                continue

            if all(workflow.ended for workflow in workflows):
                return []

            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return []

            delay = _sleep_for(workflows, remaining, poll_interval)
            logger.debug("Waiting %s seconds for %d workflows", delay, len(workflows))
            if not threads:
                threads = [_start_drain(runner, events, stop, event_timeout) for runner in sources]
            _block(events, delay, workflows)
    finally:
        stop.set()
        for runner in sources:
            runner.unsubscribe()
        for thread in threads:
            thread.join(event_timeout + 1)
        _apply_pending(events, workflows)


def _runners(workflows: list[Workflow]) -> list[Runner]:
    runners: dict[int, Runner] = {}
    for workflow in workflows:
        for runner in workflow.definition.runners.resolved_runners():
            runners[id(runner)] = runner
    return list(runners.values())


def _start_drain(
    runner: Runner,
    events: queue.Queue[tuple[Runner, RunnerEvent] | None],
    stop: threading.Event,
    event_timeout: float,
) -> threading.Thread:
    def drain() -> None:
        try:
            while not stop.is_set():
                for event in runner.wait(timeout=event_timeout):
                    events.put((runner, event))
                    if stop.is_set():
                        break
        except Exception:
            logger.exception("Event stream of %s failed", type(runner).__name__)
            events.put(_WAKE)

    thread = threading.Thread(target=drain, name=f"litestar-asl-{runner.scheme}-events", daemon=True)
    thread.start()
    return thread


def _sleep_for(workflows: list[Workflow], remaining: float | None, cap: float) -> float:
    now = utcnow()
    candidates = [
        max((wait_until - now).total_seconds(), 0)
        for workflow in workflows
        if (wait_until := workflow.wait_until()) is not None
    ]
    if remaining is not None:
        candidates.append(remaining)
    candidates.append(cap)
    return min(candidates)


def _block(
    events: queue.Queue[tuple[Runner, RunnerEvent] | None],
    delay: float,
    workflows: list[Workflow],
) -> None:
    timer = threading.Timer(delay, events.put, args=(_WAKE,))
    timer.daemon = True
    timer.start()
    try:
        item = events.get()
        if item is not _WAKE:
            _apply(item, workflows)
        _apply_pending(events, workflows)
    finally:
        timer.cancel()


def _apply_pending(events: queue.Queue[tuple[Runner, RunnerEvent] | None], workflows: list[Workflow]) -> None:
    while True:
        try:
            item = events.get_nowait()
        except queue.Empty:
            return
        if item is not _WAKE:
            _apply(item, workflows)


def _apply(item: tuple[Runner, RunnerEvent], workflows: list[Workflow]) -> None:
    runner, event = item
    for workflow in workflows:
        if workflow.apply_event(runner, event):
            return
    logger.debug("No workflow for %s event %s", event.event, runner.identify(event.runner_context))
