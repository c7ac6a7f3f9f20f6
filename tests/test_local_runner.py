"""Tests for the in-process local runner."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import pytest

from litestar_asl.core.types import WorkflowStatus
from litestar_asl.engine.workflow import Workflow
from litestar_asl.runners.base import RunnerRegistry
from litestar_asl.runners.local import LocalRunner

if TYPE_CHECKING:
    from litestar_asl.runners.base import RunnerEvent


def finish(runner: LocalRunner, runner_context: dict[str, Any]) -> RunnerEvent:
    """Block until the update event for ``runner_context`` arrives."""
    for event in runner.wait(timeout=5, events=["update"]):
        if event.runner_context["id"] == runner_context["id"]:
            runner_context.update(event.runner_context)
            return event
    msg = "no update event received"
    raise AssertionError(msg)


@pytest.fixture
def subscribed(local_runner: LocalRunner) -> Iterator[LocalRunner]:
    """The local runner with one event subscriber."""
    local_runner.subscribe()
    yield local_runner
    local_runner.unsubscribe()


@pytest.mark.unit
class TestResolve:
    """Tests for resolving local resources."""

    def test_registered_function(self, local_runner: LocalRunner) -> None:
        """Test resolving a registered callable."""
        assert local_runner.resolve("local://double")({"value": 2}, None) == {"value": 4}

    def test_import_path(self) -> None:
        """Test resolving a module:function import path."""
        runner = LocalRunner(max_workers=1)
        try:
            assert runner.resolve("local://json:dumps") is json.dumps
        finally:
            runner.shutdown()

    def test_register_without_decorator(self) -> None:
        """Test registering a callable directly."""
        runner = LocalRunner(max_workers=1, functions={"one": lambda env, secrets: 1})
        try:
            runner.register("two", lambda env, secrets: 2)
            assert runner.resolve("local://one")(None, None) == 1
            assert runner.resolve("local://two")(None, None) == 2
        finally:
            runner.shutdown()

    @pytest.mark.parametrize(
        "resource",
        ["local://missing", "local://no_such_module_xyz:run", "local://json:no_such_function", "docker://image"],
    )
    def test_unresolvable(self, local_runner: LocalRunner, resource: str) -> None:
        """Test that unknown resources raise ValueError."""
        with pytest.raises(ValueError):
            local_runner.resolve(resource)

    def test_default_registry_serves_local(self) -> None:
        """Test that the default registry creates a local runner lazily."""
        runners = RunnerRegistry.default()
        assert "local" in runners
        assert runners.resolved_runners() == []
        runner = runners.for_resource("local://anything")
        assert isinstance(runner, LocalRunner)
        assert runners.resolved_runners() == [runner]
        runner.shutdown()


@pytest.mark.unit
class TestRunAsync:
    """Tests for running callables on the thread pool."""

    def test_success(self, subscribed: LocalRunner) -> None:
        """Test a successful call and its update event."""
        runner_context = subscribed.run_async("local://double", {"value": 21})
        assert subscribed.running(runner_context)

        event = finish(subscribed, runner_context)
        assert event.event == "update"
        assert subscribed.success(runner_context)
        assert subscribed.output(runner_context) == {"value": 42}

    def test_status_refreshes_from_future(self, subscribed: LocalRunner) -> None:
        """Test that status() picks up completion without events."""
        runner_context = subscribed.run_async("local://double", {"value": 1})
        finish(subscribed, {"id": runner_context["id"]})
        subscribed.status(runner_context)
        assert not subscribed.running(runner_context)
        assert subscribed.output(runner_context) == {"value": 2}

    def test_task_failed_error(self, subscribed: LocalRunner) -> None:
        """Test that TaskFailedError maps to its error and cause."""
        runner_context = subscribed.run_async("local://reject", {})
        finish(subscribed, runner_context)
        assert not subscribed.success(runner_context)
        assert subscribed.output(runner_context) == {"Error": "Order.Rejected", "Cause": "out of stock"}

    def test_unexpected_exception(self, subscribed: LocalRunner) -> None:
        """Test that other exceptions report their class name."""
        runner_context = subscribed.run_async("local://explode", {})
        finish(subscribed, runner_context)
        assert subscribed.output(runner_context) == {"Error": "ValueError", "Cause": "boom"}

    def test_unknown_function_fails_immediately(self, local_runner: LocalRunner) -> None:
        """Test that an unresolvable resource fails without running."""
        runner_context = local_runner.run_async("local://missing", {})
        assert not local_runner.running(runner_context)
        assert local_runner.output(runner_context)["Error"] == "States.TaskFailed"

    def test_create_events(self, subscribed: LocalRunner) -> None:
        """Test filtering the event stream by type."""
        runner_context = subscribed.run_async("local://double", {"value": 1})
        created = next(subscribed.wait(timeout=5, events=["create"]))
        assert created.runner_context == {"id": runner_context["id"], "resource": "local://double"}

    def test_cleanup_is_idempotent(self, subscribed: LocalRunner) -> None:
        """Test that cleanup may be called repeatedly."""
        runner_context = subscribed.run_async("local://double", {"value": 1})
        finish(subscribed, runner_context)
        subscribed.cleanup(runner_context)
        subscribed.cleanup(runner_context)

    def test_wait_times_out(self, subscribed: LocalRunner) -> None:
        """Test that the event stream ends after the timeout."""
        assert list(subscribed.wait(timeout=0.05)) == []


def settle(runner: LocalRunner, runner_context: dict[str, Any]) -> None:
    """Poll until the task is done and its done callback has had time to run."""
    deadline = time.monotonic() + 5
    while runner.running(runner.status(runner_context)) and time.monotonic() < deadline:
        time.sleep(0.01)
    time.sleep(0.1)


@pytest.mark.unit
class TestSubscription:
    """Tests for gating the event stream on subscribers."""

    def test_events_dropped_without_subscriber(self, local_runner: LocalRunner) -> None:
        """Test that nothing is queued while nobody listens."""
        runner_context = local_runner.run_async("local://double", {"value": 1})
        settle(local_runner, runner_context)
        assert local_runner.output(runner_context) == {"value": 2}

        local_runner.subscribe()
        try:
            assert list(local_runner.wait(timeout=0.05)) == []
        finally:
            local_runner.unsubscribe()

    def test_stale_events_not_replayed(self, local_runner: LocalRunner) -> None:
        """Test that a new subscriber does not see events left by an earlier one."""
        local_runner.subscribe()
        runner_context = local_runner.run_async("local://double", {"value": 1})
        settle(local_runner, runner_context)
        local_runner.unsubscribe()

        local_runner.subscribe()
        try:
            assert list(local_runner.wait(timeout=0.05)) == []
        finally:
            local_runner.unsubscribe()

    def test_unsubscribe_wakes_wait(self, local_runner: LocalRunner) -> None:
        """Test that unsubscribe ends a blocked wait early."""
        local_runner.subscribe()
        threading.Timer(0.1, local_runner.unsubscribe).start()
        started = time.monotonic()
        assert list(local_runner.wait(timeout=5)) == []
        assert time.monotonic() - started < 2

    def test_unsubscribe_is_floored(self, local_runner: LocalRunner) -> None:
        """Test that extra unsubscribes do not leave the runner deaf to a later subscriber."""
        local_runner.unsubscribe()
        local_runner.subscribe()
        try:
            runner_context = local_runner.run_async("local://double", {"value": 5})
            finish(local_runner, runner_context)
            assert local_runner.output(runner_context) == {"value": 10}
        finally:
            local_runner.unsubscribe()


@pytest.mark.integration
class TestLocalWorkflows:
    """End-to-end workflows over local tasks."""

    def test_credentials_reach_the_task(self, local_runners: RunnerRegistry) -> None:
        """Test that resolved Credentials are passed as secrets."""
        document = {
            "StartAt": "Who",
            "States": {
                "Who": {
                    "Type": "Task",
                    "Resource": "local://whoami",
                    "Credentials": {"user.$": "$.login"},
                    "End": True,
                }
            },
        }
        workflow = Workflow(document, runners=local_runners, credentials={"login": "alice"}).run(timeout=10)
        assert workflow.output == {"user": "alice"}

    def test_caught_task_failure(self, local_runners: RunnerRegistry) -> None:
        """Test Catch over a TaskFailedError raised by a callable."""
        document = {
            "StartAt": "Order",
            "States": {
                "Order": {
                    "Type": "Task",
                    "Resource": "local://reject",
                    "Catch": [{"ErrorEquals": ["Order.Rejected"], "ResultPath": "$.failure", "Next": "Refund"}],
                    "End": True,
                },
                "Refund": {"Type": "Pass", "End": True},
            },
        }
        workflow = Workflow(document, {"order": 3}, runners=local_runners).run(timeout=10)
        assert workflow.status == WorkflowStatus.SUCCESS
        assert workflow.output == {"order": 3, "failure": {"Error": "Order.Rejected", "Cause": "out of stock"}}

    def test_map_over_local_tasks(self, local_runners: RunnerRegistry) -> None:
        """Test a Map whose iterations run on the thread pool."""
        document = {
            "StartAt": "Each",
            "States": {
                "Each": {
                    "Type": "Map",
                    "ItemsPath": "$.values",
                    "ItemSelector": {"value.$": "$$.Map.Item.Value"},
                    "MaxConcurrency": 2,
                    "ItemProcessor": {
                        "StartAt": "Double",
                        "States": {"Double": {"Type": "Task", "Resource": "local://double", "End": True}},
                    },
                    "End": True,
                }
            },
        }
        workflow = Workflow(document, {"values": [1, 2, 3]}, runners=local_runners).run(timeout=10)
        assert workflow.output == [{"value": 2}, {"value": 4}, {"value": 6}]
