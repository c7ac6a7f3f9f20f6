"""Shared test fixtures for litestar-asl test suite."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import pytest

from litestar_asl.runners.base import Runner, RunnerRegistry

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_asl.engine.workflow import Workflow
    from litestar_asl.runners.local import LocalRunner


class FakeRunner(Runner):
    """Scripted runner serving ``fake://`` resources.

    Each call to :meth:`run_async` consumes the next scripted outcome for the
    resource. Outcomes are ``("success", output)``, ``("failed", error_output)``
    or ``("pending", None)``; pending tasks stay running until
    :meth:`complete` is called. Unscripted resources echo their input.
    """

    scheme = "fake"

    def __init__(self) -> None:
        self.outcomes: dict[str, list[tuple[str, Any]]] = {}
        self.calls: list[dict[str, Any]] = []
        self.cleaned: list[int] = []
        self.pending: dict[int, dict[str, Any]] = {}

    def script(self, resource: str, *outcomes: tuple[str, Any]) -> None:
        self.outcomes.setdefault(resource, []).extend(outcomes)

    def run_async(
        self,
        resource: str,
        env: Any = None,
        secrets: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append({"resource": resource, "env": env, "secrets": secrets, "context": context})
        queued = self.outcomes.get(resource)
        status, output = queued.pop(0) if queued else ("success", env)
        runner_context = {"id": len(self.calls), "resource": resource, "status": status, "output": output}
        if status == "pending":
            runner_context["status"] = "running"
            self.pending[runner_context["id"]] = runner_context
        return runner_context

    def complete(self, task_id: int, output: Any = None, status: str = "success") -> None:
        """Finish a pending task in place."""
        self.pending.pop(task_id).update(status=status, output=output)

    def running(self, runner_context: dict[str, Any]) -> bool:
        return runner_context["status"] == "running"

    def success(self, runner_context: dict[str, Any]) -> bool:
        return runner_context["status"] == "success"

    def output(self, runner_context: dict[str, Any]) -> Any:
        return runner_context["output"]

    def cleanup(self, runner_context: dict[str, Any]) -> None:
        self.cleaned.append(runner_context["id"])


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a scripted runner for ``fake://`` resources."""
    return FakeRunner()


@pytest.fixture
def runners(fake_runner: FakeRunner) -> RunnerRegistry:
    """Create a runner registry serving ``fake://`` and ``local://``.

    Returns:
        RunnerRegistry instance
    """
    from litestar_asl.runners.local import LocalRunner

    return RunnerRegistry({"fake": fake_runner, "local": LocalRunner})


@pytest.fixture
def local_runner() -> Iterator[LocalRunner]:
    """Create a local runner with a few registered task functions."""
    from litestar_asl.exceptions import TaskFailedError
    from litestar_asl.runners.local import LocalRunner

    runner = LocalRunner(max_workers=2)

    @runner.register("double")
    def double(env: Any, secrets: Any) -> dict[str, Any]:
        return {"value": env["value"] * 2}

    @runner.register("whoami")
    def whoami(env: Any, secrets: Any) -> dict[str, Any]:
        return {"user": secrets["user"]}

    @runner.register("reject")
    def reject(env: Any, secrets: Any) -> None:
        raise TaskFailedError("Order.Rejected", "out of stock")

    @runner.register("explode")
    def explode(env: Any, secrets: Any) -> None:
        raise ValueError("boom")

    yield runner
    runner.shutdown()


@pytest.fixture
def local_runners(local_runner: LocalRunner) -> RunnerRegistry:
    """Create a runner registry serving ``local://`` from :func:`local_runner`."""
    return RunnerRegistry({"local": local_runner})


@pytest.fixture
def make_workflow(runners: RunnerRegistry) -> Any:
    """Build workflows wired to the :func:`runners` registry."""
    from litestar_asl.engine.workflow import Workflow

    def factory(payload: dict[str, Any], input: Any = None, **kwargs: Any) -> Workflow:  # noqa: A002
        return Workflow(payload, input=input, runners=runners, **kwargs)

    return factory


@pytest.fixture
def pass_document() -> dict[str, Any]:
    """A two-state Pass workflow ending in Succeed."""
    return {
        "Comment": "Pass then succeed",
        "StartAt": "FirstState",
        "States": {
            "FirstState": {"Type": "Pass", "Result": {"foo": "bar"}, "Next": "SuccessState"},
            "SuccessState": {"Type": "Succeed"},
        },
    }


@pytest.fixture
def task_document() -> dict[str, Any]:
    """A single Task workflow on the fake runner."""
    return {
        "StartAt": "Work",
        "States": {"Work": {"Type": "Task", "Resource": "fake://work", "End": True}},
    }

