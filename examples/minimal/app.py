"""Minimal example of litestar-asl integration.

This example demonstrates the basic usage of the ASLPlugin with an order
processing workflow whose tasks are plain Python functions.

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload
"""

from __future__ import annotations

from typing import Any

from litestar import Litestar, get, post

from litestar_asl import (
    ASLPlugin,
    ASLPluginConfig,
    LocalExecutionEngine,
    LocalRunner,
    RunnerRegistry,
    TaskFailedError,
)

# =============================================================================
# Task Functions
# =============================================================================

runner = LocalRunner(max_workers=4)


@runner.register("validate_order")
def validate_order(env: dict[str, Any], secrets: Any) -> dict[str, Any]:
    """Validate the incoming order data."""
    items = env.get("items") or []
    return {"valid": bool(env.get("order_id") and items), "item_count": len(items)}


@runner.register("process_payment")
def process_payment(env: dict[str, Any], secrets: Any) -> dict[str, Any]:
    """Process payment for the order."""
    if env["amount"] <= 0:
        raise TaskFailedError("Payment.Invalid", f"cannot charge {env['amount']}")
    return {"payment_id": f"PAY-{env['order_id']}", "amount": env["amount"], "status": "completed"}


@runner.register("fulfill_order")
def fulfill_order(env: dict[str, Any], secrets: Any) -> dict[str, Any]:
    """Fulfill the order by preparing shipment."""
    return {"tracking_number": f"TRACK-{env['order_id']}", "status": "shipped"}


# =============================================================================
# Workflow Document
# =============================================================================

ORDER_PROCESSING = {
    "Comment": "Process customer orders through validation, payment, and fulfillment",
    "StartAt": "ValidateOrder",
    "States": {
        "ValidateOrder": {
            "Type": "Task",
            "Resource": "local://validate_order",
            "ResultPath": "$.validation",
            "Next": "CheckValidation",
        },
        "CheckValidation": {
            "Type": "Choice",
            "Choices": [{"Variable": "$.validation.valid", "BooleanEquals": True, "Next": "ProcessPayment"}],
            "Default": "RejectOrder",
        },
        "ProcessPayment": {
            "Type": "Task",
            "Resource": "local://process_payment",
            "Parameters": {"order_id.$": "$.order_id", "amount.$": "$.amount"},
            "ResultPath": "$.payment",
            "Retry": [{"ErrorEquals": ["Payment.Unavailable"], "IntervalSeconds": 1, "MaxAttempts": 2}],
            "Catch": [{"ErrorEquals": ["Payment.Invalid"], "ResultPath": "$.error", "Next": "PaymentFailed"}],
            "Next": "FulfillOrder",
        },
        "FulfillOrder": {
            "Type": "Task",
            "Resource": "local://fulfill_order",
            "Parameters": {"order_id.$": "$.order_id"},
            "ResultPath": "$.shipment",
            "End": True,
        },
        "RejectOrder": {"Type": "Fail", "Error": "Order.Invalid", "Cause": "order has no id or no items"},
        "PaymentFailed": {"Type": "Fail", "Error": "Order.PaymentFailed", "CausePath": "$.error.Cause"},
    },
}


# =============================================================================
# Route Handlers
# =============================================================================


@post("/orders", sync_to_thread=True)
def place_order(data: dict[str, Any], workflow_engine: LocalExecutionEngine) -> dict[str, Any]:
    """Start the order workflow and wait for it to finish."""
    execution = workflow_engine.start_execution("order_processing", input=data)
    workflow_engine.wait(timeout=10)
    return {
        "execution_id": execution.id,
        "status": execution.status.value,
        "output": execution.output,
    }


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# =============================================================================
# Application
# =============================================================================

plugin_config = ASLPluginConfig(
    runners=RunnerRegistry({"local": runner}),
    definitions={"order_processing": ORDER_PROCESSING},
)

app = Litestar(
    route_handlers=[place_order, health_check],
    plugins=[ASLPlugin(config=plugin_config)],
    debug=True,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
