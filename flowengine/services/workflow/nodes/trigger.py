"""Manual trigger node.

Entry point of manually started workflows. It ignores its inputs and
stamps its output with trigger metadata and a timestamp.
"""

from datetime import UTC, datetime
from typing import Any

from flowengine.models.enums import NodeCategory
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult


class ManualTriggerNode(BaseNode):
    type = "manual_trigger"
    display_name = "Manual Trigger"
    category = NodeCategory.TRIGGER
    description = "Starts the workflow when it is executed manually"

    async def execute_internal(
        self,
        context: NodeContext,
        parameters: dict[str, Any],
    ) -> NodeExecutionResult:
        return NodeExecutionResult.ok(
            {
                "triggered": True,
                "timestamp": datetime.now(UTC).isoformat(),
                "data": {
                    "triggeredBy": context.user_id or "manual",
                    "inputData": dict(context.input_data),
                },
            }
        )
