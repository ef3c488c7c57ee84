"""If condition node.

Compares two values and emits the branch label ``"true"`` or ``"false"``
as its ``conditionalOutput``. Connections leaving the node with a
``source_output`` of ``"true"`` or ``"false"`` only fire for the matching
outcome.
"""

from collections.abc import Callable
from typing import Any

from flowengine.models.enums import NodeCategory, ParameterType
from flowengine.schemas.nodes import NodeOperation, NodeParameter, ParameterOption
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _compare(left: str, right: str) -> int:
    """Numeric comparison when both sides parse as numbers, ordinal otherwise."""
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return (left_num > right_num) - (left_num < right_num)
    return (left > right) - (left < right)


OPERATORS: dict[str, Callable[[str, str], bool]] = {
    "equals": lambda a, b: _compare(a, b) == 0,
    "notEquals": lambda a, b: _compare(a, b) != 0,
    "greaterThan": lambda a, b: _compare(a, b) > 0,
    "lessThan": lambda a, b: _compare(a, b) < 0,
    "contains": lambda a, b: b.casefold() in a.casefold(),
    "notContains": lambda a, b: b.casefold() not in a.casefold(),
}


class IfConditionNode(BaseNode):
    type = "if_condition"
    display_name = "If"
    category = NodeCategory.PROCESSING
    description = "Routes execution to the 'true' or 'false' branch"
    operations = [
        NodeOperation(
            name="evaluate",
            display_name="Evaluate",
            parameters=[
                NodeParameter(name="value1", display_name="Value 1", required=True),
                NodeParameter(
                    name="operator",
                    display_name="Operator",
                    type=ParameterType.OPTIONS,
                    required=True,
                    default="equals",
                    options=[
                        ParameterOption(name="Equals", value="equals"),
                        ParameterOption(name="Not Equals", value="notEquals"),
                        ParameterOption(name="Greater Than", value="greaterThan"),
                        ParameterOption(name="Less Than", value="lessThan"),
                        ParameterOption(name="Contains", value="contains"),
                        ParameterOption(name="Not Contains", value="notContains"),
                    ],
                ),
                NodeParameter(name="value2", display_name="Value 2", required=True),
            ],
        )
    ]

    async def execute_internal(
        self,
        context: NodeContext,
        parameters: dict[str, Any],
    ) -> NodeExecutionResult:
        operator = _as_text(parameters["operator"])
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")

        value1 = _as_text(parameters["value1"])
        value2 = _as_text(parameters["value2"])
        result = OPERATORS[operator](value1, value2)

        return NodeExecutionResult.ok(
            {
                "result": result,
                "value1": value1,
                "value2": value2,
                "operator": operator,
                "conditionalOutput": "true" if result else "false",
            }
        )
