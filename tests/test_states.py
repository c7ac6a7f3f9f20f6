"""Tests for the Pass, Succeed, Fail, Choice and Wait states."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from litestar_asl.core.context import utcnow
from litestar_asl.core.types import StepResult, WorkflowStatus
from litestar_asl.engine.workflow import Workflow
from litestar_asl.exceptions import InvalidWorkflowError


def single(state: dict[str, Any]) -> dict[str, Any]:
    return {"StartAt": "Only", "States": {"Only": state}}


@pytest.mark.unit
class TestPassState:
    """Tests for the Pass state."""

    def test_result_replaces_input(self, pass_document: dict[str, Any]) -> None:
        """Test that Result becomes the output by default."""
        workflow = Workflow(pass_document, input={"ignored": True}).run()
        assert workflow.status == WorkflowStatus.SUCCESS
        assert workflow.output == {"foo": "bar"}

    def test_result_path(self) -> None:
        """Test that ResultPath places Result inside the input."""
        workflow = Workflow(single({"Type": "Pass", "Result": 1, "ResultPath": "$.added", "End": True}), {"a": 0}).run()
        assert workflow.output == {"a": 0, "added": 1}

    def test_result_path_applies_to_filtered_input(self) -> None:
        """Test that ResultPath merges into the InputPath selection."""
        state = {"Type": "Pass", "InputPath": "$.inner", "Result": 2, "ResultPath": "$.x", "End": True}
        workflow = Workflow(single(state), {"inner": {"y": 1}, "outer": 0}).run()
        assert workflow.output == {"y": 1, "x": 2}

    def test_parameters(self) -> None:
        """Test that Parameters are resolved against the input."""
        state = {"Type": "Pass", "Parameters": {"id.$": "$.order.id", "kind": "order"}, "End": True}
        workflow = Workflow(single(state), {"order": {"id": 7}}).run()
        assert workflow.output == {"id": 7, "kind": "order"}

    def test_null_result_path_discards_result(self) -> None:
        """Test that a null ResultPath passes the input through."""
        workflow = Workflow(single({"Type": "Pass", "Result": 1, "ResultPath": None, "End": True}), {"a": 0}).run()
        assert workflow.output == {"a": 0}

    def test_output_path(self) -> None:
        """Test that OutputPath selects part of the output."""
        state = {"Type": "Pass", "Result": {"keep": 1, "drop": 2}, "OutputPath": "$.keep", "End": True}
        assert Workflow(single(state)).run().output == 1

    def test_null_output_path(self) -> None:
        """Test that a null OutputPath produces an empty object."""
        assert Workflow(single({"Type": "Pass", "OutputPath": None, "End": True}), {"a": 1}).run().output == {}

    def test_missing_input_path_fails_workflow(self) -> None:
        """Test that an absent InputPath fails the workflow at runtime."""
        workflow = Workflow(single({"Type": "Pass", "InputPath": "$.missing", "End": True}), {"a": 1}).run()
        assert workflow.status == WorkflowStatus.FAILURE
        assert workflow.output["Error"] == "States.Runtime"


@pytest.mark.unit
class TestSucceedAndFail:
    """Tests for terminal states."""

    def test_succeed_passes_input(self) -> None:
        """Test that Succeed outputs its input."""
        workflow = Workflow(single({"Type": "Succeed"}), {"a": 1}).run()
        assert workflow.status == WorkflowStatus.SUCCESS
        assert workflow.output == {"a": 1}

    def test_fail_with_error_and_cause(self) -> None:
        """Test that Fail reports its literal Error and Cause."""
        workflow = Workflow(single({"Type": "Fail", "Error": "Order.Invalid", "Cause": "bad order"})).run()
        assert workflow.status == WorkflowStatus.FAILURE
        assert workflow.output == {"Error": "Order.Invalid", "Cause": "bad order"}
        assert workflow.context.state.error == "Order.Invalid"

    def test_fail_without_error(self) -> None:
        """Test the default error name."""
        workflow = Workflow(single({"Type": "Fail"})).run()
        assert workflow.status == WorkflowStatus.FAILURE
        assert workflow.output == {"Error": "States.Fail"}

    def test_fail_with_paths(self) -> None:
        """Test ErrorPath and CausePath, including intrinsic functions."""
        state = {"Type": "Fail", "ErrorPath": "$.code", "CausePath": "States.Format('order {} failed', $.id)"}
        workflow = Workflow(single(state), {"code": "E42", "id": 9}).run()
        assert workflow.output == {"Error": "E42", "Cause": "order 9 failed"}

    def test_fail_error_and_error_path_conflict(self) -> None:
        """Test that a literal and a path cannot both be given."""
        with pytest.raises(InvalidWorkflowError, match='cannot be combined with "Error"'):
            Workflow(single({"Type": "Fail", "Error": "E", "ErrorPath": "$.e"}))


@pytest.mark.unit
class TestChoiceState:
    """Tests for the Choice state."""

    @pytest.fixture
    def document(self) -> dict[str, Any]:
        return {
            "StartAt": "Check",
            "States": {
                "Check": {
                    "Type": "Choice",
                    "Choices": [
                        {"Variable": "$.n", "NumericGreaterThan": 10, "Next": "Big"},
                        {"Variable": "$.n", "NumericGreaterThan": 0, "Next": "Small"},
                    ],
                    "Default": "Zero",
                },
                "Big": {"Type": "Pass", "Result": "big", "End": True},
                "Small": {"Type": "Pass", "Result": "small", "End": True},
                "Zero": {"Type": "Pass", "Result": "zero", "End": True},
            },
        }

    @pytest.mark.parametrize(("n", "expected"), [(11, "big"), (5, "small"), (10, "small"), (0, "zero")])
    def test_first_matching_rule_wins(self, document: dict[str, Any], n: int, expected: str) -> None:
        """Test rule order and the Default branch."""
        assert Workflow(document, {"n": n}).run().output == expected

    def test_history_records_choice(self, document: dict[str, Any]) -> None:
        """Test that the Choice state passes its input through."""
        workflow = Workflow(document, {"n": 3}).run()
        first = workflow.context.state_history[0]
        assert first["Name"] == "Check"
        assert first["NextState"] == "Small"
        assert first["Output"] == {"n": 3}

    def test_no_match_without_default(self) -> None:
        """Test that no match and no Default fails the workflow."""
        document = {
            "StartAt": "Check",
            "States": {
                "Check": {"Type": "Choice", "Choices": [{"Variable": "$.n", "NumericEquals": 1, "Next": "Done"}]},
                "Done": {"Type": "Succeed"},
            },
        }
        workflow = Workflow(document, {"n": 2}).run()
        assert workflow.status == WorkflowStatus.FAILURE
        assert workflow.output["Error"] == "States.NoChoiceMatched"

    def test_choices_required(self) -> None:
        """Test that Choices must be a non-empty array."""
        with pytest.raises(InvalidWorkflowError, match='"Choices"'):
            Workflow(single({"Type": "Choice", "Choices": []}))


@pytest.mark.unit
class TestWaitState:
    """Tests for the Wait state."""

    def test_zero_seconds(self) -> None:
        """Test that a zero wait completes immediately."""
        workflow = Workflow(single({"Type": "Wait", "Seconds": 0, "End": True}), {"a": 1}).run(timeout=5)
        assert workflow.status == WorkflowStatus.SUCCESS
        assert workflow.output == {"a": 1}

    def test_blocks_until_elapsed(self) -> None:
        """Test that a future wait blocks the workflow."""
        workflow = Workflow(single({"Type": "Wait", "Seconds": 60, "End": True}))
        assert workflow.start().step_nonblock() is StepResult.BLOCKED
        assert workflow.waiting()
        assert not workflow.step_nonblock_ready()
        assert workflow.wait_until() > utcnow() + timedelta(seconds=50)

    def test_past_timestamp(self) -> None:
        """Test that a timestamp in the past does not block."""
        workflow = Workflow(single({"Type": "Wait", "Timestamp": "2000-01-01T00:00:00Z", "End": True})).run(timeout=5)
        assert workflow.status == WorkflowStatus.SUCCESS

    def test_seconds_path(self) -> None:
        """Test reading the duration from the input."""
        workflow = Workflow(single({"Type": "Wait", "SecondsPath": "$.delay", "End": True}), {"delay": 0}).run(timeout=5)
        assert workflow.status == WorkflowStatus.SUCCESS

    def test_invalid_seconds_path_value(self) -> None:
        """Test that a non-integer duration fails the workflow."""
        workflow = Workflow(single({"Type": "Wait", "SecondsPath": "$.delay", "End": True}), {"delay": "soon"}).run()
        assert workflow.status == WorkflowStatus.FAILURE
        assert "SecondsPath" in workflow.output["Cause"]

    def test_exactly_one_duration(self) -> None:
        """Test that exactly one duration field is required."""
        with pytest.raises(InvalidWorkflowError, match="requires exactly one"):
            Workflow(single({"Type": "Wait", "End": True}))
        with pytest.raises(InvalidWorkflowError, match="requires exactly one"):
            Workflow(single({"Type": "Wait", "Seconds": 1, "Timestamp": "2000-01-01T00:00:00Z", "End": True}))

    def test_invalid_timestamp_literal(self) -> None:
        """Test that Timestamp literals are validated while parsing."""
        with pytest.raises(InvalidWorkflowError, match="RFC 3339"):
            Workflow(single({"Type": "Wait", "Timestamp": "tomorrow", "End": True}))
