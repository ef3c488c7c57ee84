"""Test node kinds for executor and engine tests.

The nodes report to a shared ``NodeProbe`` so tests can observe when a
node started, how many attempts it made and how many ran concurrently.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import pytest

from flowengine.models.enums import NodeCategory, ParameterType
from flowengine.schemas.nodes import NodeOperation, NodeParameter
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult
from flowengine.services.workflow.nodes.registry import NodeRegistry


@dataclass
class NodeProbe:
    started: asyncio.Event = field(default_factory=asyncio.Event)
    calls: Counter = field(default_factory=Counter)
    running: int = 0
    max_running: int = 0


@pytest.fixture
def probe() -> NodeProbe:
    return NodeProbe()


@pytest.fixture
def registry(registry: NodeRegistry, probe: NodeProbe) -> NodeRegistry:
    """Default registry plus the probe-backed test node kinds."""

    class SleepNode(BaseNode):
        type = "sleep"
        display_name = "Sleep"
        category = NodeCategory.ACTION
        operations = [
            NodeOperation(
                name="sleep",
                parameters=[NodeParameter(name="seconds", type=ParameterType.NUMBER, default=0)],
            )
        ]

        async def execute_internal(
            self, context: NodeContext, parameters: dict[str, Any]
        ) -> NodeExecutionResult:
            probe.calls[context.node_id] += 1
            probe.running += 1
            probe.max_running = max(probe.max_running, probe.running)
            probe.started.set()
            try:
                await asyncio.sleep(float(parameters["seconds"]))
            finally:
                probe.running -= 1
            return NodeExecutionResult.ok({"slept": parameters["seconds"], **context.input_data})

    class FailNode(BaseNode):
        type = "fail"
        display_name = "Fail"
        category = NodeCategory.ACTION

        async def execute_internal(
            self, context: NodeContext, parameters: dict[str, Any]
        ) -> NodeExecutionResult:
            probe.calls[context.node_id] += 1
            raise RuntimeError(parameters.get("message", "boom"))

    class FlakyNode(BaseNode):
        """Fails ``failures`` times, then succeeds."""

        type = "flaky"
        display_name = "Flaky"
        category = NodeCategory.ACTION

        async def execute_internal(
            self, context: NodeContext, parameters: dict[str, Any]
        ) -> NodeExecutionResult:
            probe.calls[context.node_id] += 1
            attempts = probe.calls[context.node_id]
            if attempts <= int(parameters.get("failures", 1)):
                raise RuntimeError(f"attempt {attempts} failed")
            return NodeExecutionResult.ok({"attempts": attempts})

    class BadLabelNode(BaseNode):
        type = "bad_label"
        display_name = "Bad Label"
        category = NodeCategory.PROCESSING

        async def execute_internal(
            self, context: NodeContext, parameters: dict[str, Any]
        ) -> NodeExecutionResult:
            return NodeExecutionResult.ok({"conditionalOutput": ["true", "false"]})

    class EchoNode(BaseNode):
        type = "echo"
        display_name = "Echo"
        category = NodeCategory.PROCESSING

        async def execute_internal(
            self, context: NodeContext, parameters: dict[str, Any]
        ) -> NodeExecutionResult:
            probe.calls[context.node_id] += 1
            return NodeExecutionResult.ok({**context.input_data, **parameters})

    for node_class in (SleepNode, FailNode, FlakyNode, BadLabelNode, EchoNode):
        registry.register(node_class)
    return registry
