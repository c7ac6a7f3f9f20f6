"""Tests for the Workflow execution API."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from litestar_asl.core.types import StepResult, WorkflowStatus
from litestar_asl.engine.workflow import Workflow
from litestar_asl.exceptions import InvalidWorkflowError, WorkflowAlreadyCompletedError
from litestar_asl.runners.base import RunnerEvent

if TYPE_CHECKING:
    from pathlib import Path

    from tests.conftest import FakeRunner


@pytest.mark.unit
class TestWorkflowLifecycle:
    """Tests for creating and stepping workflows."""

    def test_pending_before_start(self, pass_document: dict[str, Any]) -> None:
        """Test the state of a new workflow."""
        workflow = Workflow(pass_document)
        assert workflow.status == WorkflowStatus.PENDING
        assert workflow.output is None
        assert not workflow.ended
        assert workflow.step_nonblock_ready()

    def test_step_by_step(self, pass_document: dict[str, Any]) -> None:
        """Test that each step runs exactly one state."""
        workflow = Workflow(pass_document, input={"in": 1})

        assert workflow.step_nonblock() is StepResult.COMPLETED
        assert workflow.status == WorkflowStatus.RUNNING
        assert workflow.context.state_name == "SuccessState"
        assert workflow.context.input == {"foo": "bar"}

        assert workflow.step_nonblock() is StepResult.COMPLETED
        assert workflow.end()
        assert workflow.status == WorkflowStatus.SUCCESS
        assert workflow.output == {"foo": "bar"}

    def test_step_after_end(self, pass_document: dict[str, Any]) -> None:
        """Test that stepping an ended workflow raises."""
        workflow = Workflow(pass_document).run()
        with pytest.raises(WorkflowAlreadyCompletedError):
            workflow.step_nonblock()
        assert not workflow.step_nonblock_ready()

    def test_state_history(self, pass_document: dict[str, Any]) -> None:
        """Test the per-state records kept in the history."""
        workflow = Workflow(pass_document, input={"in": 1}).run()
        first, second = workflow.context.state_history

        assert first["Name"] == "FirstState"
        assert first["Input"] == {"in": 1}
        assert first["Output"] == {"foo": "bar"}
        assert first["NextState"] == "SuccessState"
        assert first["Guid"] != second["Guid"]
        assert "FinishedTime" in first
        assert first["Duration"] >= 0
        assert second["Name"] == "SuccessState"

    def test_json_text_input_and_credentials(self, pass_document: dict[str, Any]) -> None:
        """Test that input and credentials may be JSON text."""
        workflow = Workflow(json.dumps(pass_document), input='{"a": 1}', credentials='{"user": "bob"}')
        assert workflow.context.execution.input == {"a": 1}
        assert workflow.context.credentials == {"user": "bob"}

    def test_invalid_input_json(self, pass_document: dict[str, Any]) -> None:
        """Test that malformed input JSON is rejected."""
        with pytest.raises(InvalidWorkflowError, match="Invalid input JSON"):
            Workflow(pass_document, input="{oops")

    def test_identity(self, pass_document: dict[str, Any]) -> None:
        """Test execution ids, names and the rendered state machine."""
        workflow = Workflow(pass_document, name="demo", execution_id="exec-1")
        assert workflow.id == "exec-1"
        assert workflow.name == "demo"
        assert workflow.to_dict()["StateMachine"] == {"Name": "demo", "Id": "exec-1"}
        assert repr(workflow) == "Workflow('demo', id='exec-1', status='pending')"

    def test_context_object_paths(self) -> None:
        """Test that $$ paths read the execution record."""
        document = {
            "StartAt": "Describe",
            "States": {
                "Describe": {
                    "Type": "Pass",
                    "Parameters": {"id.$": "$$.Execution.Id", "state.$": "$$.State.Name", "name.$": "$$.StateMachine.Name"},
                    "End": True,
                }
            },
        }
        workflow = Workflow(document, name="describer", execution_id="e-9").run()
        assert workflow.output == {"id": "e-9", "state": "Describe", "name": "describer"}

    def test_load_from_file(self, tmp_path: Path, pass_document: dict[str, Any]) -> None:
        """Test loading a document from disk."""
        path = tmp_path / "greeting.asl.json"
        path.write_text(json.dumps(pass_document))
        workflow = Workflow.load(path, input={"x": 1})
        assert workflow.name == "greeting.asl"
        assert workflow.run().output == {"foo": "bar"}

    def test_resume_from_context(self, pass_document: dict[str, Any]) -> None:
        """Test that a context can be handed to a new Workflow."""
        first = Workflow(pass_document)
        first.step_nonblock()
        resumed = Workflow(pass_document, context=first.context).run()
        assert resumed.id == first.id
        assert resumed.status == WorkflowStatus.SUCCESS


@pytest.mark.unit
class TestWorkflowWaiting:
    """Tests for blocking helpers and runner events."""

    def test_step_nonblock_wait_times_out(self, make_workflow: Any, fake_runner: FakeRunner) -> None:
        """Test that a blocked workflow is not stepped when the wait times out."""
        fake_runner.script("fake://work", ("pending", None))
        workflow = make_workflow({"StartAt": "W", "States": {"W": {"Type": "Task", "Resource": "fake://work", "End": True}}})
        workflow.run_nonblock()
        assert workflow.step_nonblock_wait(timeout=0) is StepResult.BLOCKED

    def test_step_nonblock_wait_ready(self, pass_document: dict[str, Any]) -> None:
        """Test that a ready workflow steps immediately."""
        workflow = Workflow(pass_document)
        assert workflow.step_nonblock_wait(timeout=0) is StepResult.COMPLETED

    def test_run_with_timeout_leaves_workflow_running(self) -> None:
        """Test that run gives up after its timeout."""
        workflow = Workflow({"StartAt": "W", "States": {"W": {"Type": "Wait", "Seconds": 60, "End": True}}})
        workflow.run(timeout=0.05)
        assert workflow.status == WorkflowStatus.RUNNING

    def test_apply_event(self, make_workflow: Any, fake_runner: FakeRunner) -> None:
        """Test that events are merged into the matching runner context."""
        fake_runner.script("fake://work", ("pending", None))
        workflow = make_workflow({"StartAt": "W", "States": {"W": {"Type": "Task", "Resource": "fake://work", "End": True}}})
        workflow.run_nonblock()

        assert not workflow.apply_event(fake_runner, RunnerEvent("update", {"id": 99, "status": "success"}))
        assert workflow.apply_event(fake_runner, RunnerEvent("update", {"id": 1, "status": "success", "output": 5}))
        assert workflow.context.state.runner_context["status"] == "success"

        workflow.run_nonblock()
        assert workflow.output == 5

    def test_event_snapshot_is_private(self) -> None:
        """Test that events copy the runner context they are given."""
        source = {"id": 1, "status": "running"}
        event = RunnerEvent("create", source)
        source["status"] = "success"
        assert event.runner_context["status"] == "running"
