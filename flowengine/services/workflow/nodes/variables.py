"""Set variable node.

Publishes named values both as its own output and into the workflow's
``variables`` map, so later nodes can read them as
``{{node_id.name}}`` or ``{{variables.name}}``.
"""

from collections.abc import Mapping
from typing import Any

from flowengine.models.enums import NodeCategory, ParameterType
from flowengine.schemas.nodes import NodeOperation, NodeParameter
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult


class SetVariableNode(BaseNode):
    type = "set_variable"
    display_name = "Set Variable"
    category = NodeCategory.PROCESSING
    description = "Sets workflow variables from literal values or expressions"
    operations = [
        NodeOperation(
            name="set",
            display_name="Set",
            parameters=[
                NodeParameter(
                    name="variables",
                    display_name="Variables",
                    type=ParameterType.COLLECTION,
                    required=True,
                    description="List of {name, value} pairs, or a name to value map",
                ),
            ],
        )
    ]

    async def execute_internal(
        self,
        context: NodeContext,
        parameters: dict[str, Any],
    ) -> NodeExecutionResult:
        variables = parameters["variables"]
        if isinstance(variables, Mapping):
            pairs = list(variables.items())
        elif isinstance(variables, list):
            pairs = []
            for index, item in enumerate(variables):
                if not isinstance(item, Mapping) or not item.get("name"):
                    raise ValueError(f"Variable at position {index} must have a name")
                pairs.append((str(item["name"]), item.get("value")))
        else:
            raise ValueError("Parameter 'variables' must be a list or a map")

        output: dict[str, Any] = {}
        for name, value in pairs:
            output[name] = value
            await context.set_variable(name, value)

        return NodeExecutionResult.ok(output, metadata={"count": len(output)})
