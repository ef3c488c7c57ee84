"""Tests for WorkflowExecutionEngine."""

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from flowengine.models.enums import ExecutionStatus
from flowengine.schemas.execution import ExecutionLogEntry, ExecutionOptions
from flowengine.schemas.workflow import WorkflowDefinition
from flowengine.services.executors.http_client import HttpRequestClient
from flowengine.services.workflow.engine import WorkflowExecutionEngine
from flowengine.services.workflow.exceptions import (
    ExecutionError,
    ExecutionNotFoundError,
    ExecutionNotRunningError,
)
from flowengine.services.workflow.execution_logger import ExecutionLogger, InMemoryLogStore
from flowengine.services.workflow.nodes.http_request import HttpRequestNode
from flowengine.services.workflow.nodes.registry import create_default_registry


def workflow(
    nodes: list[dict[str, Any]],
    connections: list[dict[str, Any]],
    **extra: Any,
) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(
        {"id": "wf-test", "name": "Test", "nodes": nodes, "connections": connections, **extra}
    )


def start() -> dict[str, Any]:
    return {"id": "start", "type": "manual_trigger"}


class TestLinearExecution:
    """Tests for straight-line workflows."""

    @pytest.mark.asyncio
    async def test_completes_in_order(
        self,
        engine: WorkflowExecutionEngine,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        result = await engine.execute(linear_workflow, {"symbol": "AAPL"}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.error_message is None
        assert result.executed_node_ids == ["start", "set", "http"]
        assert result.output_data["set"] == {"symbol": "AAPL", "limit": 10}
        assert result.output_data["http"]["body"] == {"ok": True}
        assert result.completed_at is not None
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_expressions_reach_http_request(
        self,
        linear_workflow: WorkflowDefinition,
        make_http_client: Callable[..., HttpRequestClient],
        fast_options: ExecutionOptions,
    ) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(f"{request.url.host}{request.url.path}")
            return httpx.Response(200, json={"price": 190.5})

        client = make_http_client(handler=handler)

        class CapturingHttpNode(HttpRequestNode):
            def __init__(self) -> None:
                super().__init__(client=client)

        registry = create_default_registry()
        registry.register(CapturingHttpNode, replace=True)
        engine = WorkflowExecutionEngine(registry)

        result = await engine.execute(linear_workflow, {"symbol": "MSFT"}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert seen == ["api.example.com/quotes/MSFT"]
        assert result.output_data["http"]["body"] == {"price": 190.5}

    @pytest.mark.asyncio
    async def test_output_node_selects_run_output(
        self,
        engine: WorkflowExecutionEngine,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        options = fast_options.model_copy(update={"output_node_id": "set"})

        result = await engine.execute(linear_workflow, {"symbol": "AAPL"}, options)

        assert result.output_data == {"symbol": "AAPL", "limit": 10}

    @pytest.mark.asyncio
    async def test_variables_visible_downstream(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow(
            [
                start(),
                {
                    "id": "set",
                    "type": "set_variable",
                    "parameters": {"variables": {"threshold": 100}},
                },
                {"id": "echo", "type": "echo", "parameters": {"seen": "{{variables.threshold}}"}},
            ],
            [{"source": "start", "target": "set"}, {"source": "set", "target": "echo"}],
        )

        result = await engine.execute(wf, {}, fast_options)

        assert result.output_data["echo"]["seen"] == 100


class TestBranching:
    """Tests for conditional edges."""

    @pytest.fixture
    def branch_workflow(self) -> WorkflowDefinition:
        return workflow(
            [
                start(),
                {
                    "id": "check",
                    "type": "if_condition",
                    "parameters": {"value1": "{{input.flag}}", "operator": "equals", "value2": "yes"},
                },
                {"id": "yes", "type": "echo", "parameters": {"branch": "yes"}},
                {"id": "no", "type": "echo", "parameters": {"branch": "no"}},
            ],
            [
                {"source": "start", "target": "check"},
                {"source": "check", "target": "yes", "sourceOutput": "true"},
                {"source": "check", "target": "no", "sourceOutput": "false"},
            ],
        )

    @pytest.mark.asyncio
    async def test_true_branch(
        self,
        engine: WorkflowExecutionEngine,
        branch_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        result = await engine.execute(branch_workflow, {"flag": "yes"}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.executed_node_ids == ["start", "check", "yes"]
        assert result.get_node_execution("check").conditional_output == "true"
        assert "no" not in result.output_data

    @pytest.mark.asyncio
    async def test_false_branch(
        self,
        engine: WorkflowExecutionEngine,
        branch_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        result = await engine.execute(branch_workflow, {"flag": "no"}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.executed_node_ids == ["start", "check", "no"]
        assert result.output_data["no"]["branch"] == "no"

    @pytest.mark.asyncio
    async def test_branch_on_http_status(
        self,
        make_http_client: Callable[..., HttpRequestClient],
        fast_options: ExecutionOptions,
    ) -> None:
        client = make_http_client({"error": "not found"}, status_code=404)

        class NotFoundHttpNode(HttpRequestNode):
            def __init__(self) -> None:
                super().__init__(client=client)

        registry = create_default_registry()
        registry.register(NotFoundHttpNode, replace=True)
        engine = WorkflowExecutionEngine(registry)
        wf = workflow(
            [
                start(),
                {
                    "id": "http",
                    "type": "http_request",
                    "parameters": {"url": "https://api.example.com/quotes/XYZ", "method": "GET"},
                },
                {
                    "id": "missing",
                    "type": "if_condition",
                    "parameters": {
                        "value1": "{{http.statusCode}}",
                        "operator": "equals",
                        "value2": "404",
                    },
                },
                {
                    "id": "fallback",
                    "type": "set_variable",
                    "parameters": {"variables": {"quote": "unavailable"}},
                },
            ],
            [
                {"source": "start", "target": "http"},
                {"source": "http", "target": "missing"},
                {"source": "missing", "target": "fallback", "sourceOutput": "true"},
            ],
        )

        result = await engine.execute(wf, {}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.executed_node_ids == ["start", "http", "missing", "fallback"]
        assert result.output_data["http"]["statusCode"] == 404
        assert result.output_data["fallback"] == {"quote": "unavailable"}


class TestFailures:
    """Tests for node failures and the continue-on-error policy."""

    @pytest.mark.asyncio
    async def test_failure_stops_execution(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow(
            [start(), {"id": "boom", "type": "fail"}, {"id": "after", "type": "echo"}],
            [{"source": "start", "target": "boom"}, {"source": "boom", "target": "after"}],
        )

        result = await engine.execute(wf, {}, fast_options)

        assert result.status == ExecutionStatus.FAILED
        assert result.error_message == "Node boom execution failed: boom"
        assert result.executed_node_ids == ["start", "boom"]
        assert result.get_node_execution("after") is None

    @pytest.mark.asyncio
    async def test_continue_on_error(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow(
            [
                start(),
                {"id": "boom", "type": "fail"},
                {"id": "ok", "type": "echo"},
                {"id": "after", "type": "echo"},
            ],
            [
                {"source": "start", "target": "boom"},
                {"source": "start", "target": "ok"},
                {"source": "boom", "target": "after"},
            ],
        )
        options = fast_options.model_copy(update={"continue_on_error": True})

        result = await engine.execute(wf, {"x": 1}, options)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.error_message == "Nodes failed: boom"
        assert set(result.executed_node_ids) == {"start", "boom", "ok", "after"}
        assert result.get_node_execution("boom").success is False
        assert result.output_data["boom"] == {}
        assert result.output_data["after"] == {}

    @pytest.mark.asyncio
    async def test_unknown_node_type(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow(
            [start(), {"id": "mystery", "type": "not_registered"}],
            [{"source": "start", "target": "mystery"}],
        )

        result = await engine.execute(wf, {}, fast_options)

        assert result.status == ExecutionStatus.FAILED
        assert "not_registered" in result.error_message

    @pytest.mark.asyncio
    async def test_validation_failure_runs_nothing(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow([start(), {"id": "orphan", "type": "echo"}], [])

        result = await engine.execute(wf, {}, fast_options)

        assert result.status == ExecutionStatus.FAILED
        assert result.error_message == "Workflow validation failed"
        assert result.validation_errors
        assert result.node_executions == []

    @pytest.mark.asyncio
    async def test_cycle_is_rejected(
        self,
        engine: WorkflowExecutionEngine,
        fast_options: ExecutionOptions,
    ) -> None:
        wf = workflow(
            [start(), {"id": "a", "type": "echo"}, {"id": "b", "type": "echo"}],
            [
                {"source": "start", "target": "a"},
                {"source": "a", "target": "b"},
                {"source": "b", "target": "a"},
            ],
        )

        result = await engine.execute(wf, {}, fast_options)

        assert result.status == ExecutionStatus.FAILED
        assert any("cycle" in error.lower() for error in result.validation_errors)


class TestConcurrency:
    """Tests for parallel and sequential scheduling."""

    @pytest.fixture
    def fan_out(self) -> WorkflowDefinition:
        return workflow(
            [
                start(),
                {"id": "left", "type": "sleep", "parameters": {"seconds": 0.05}},
                {"id": "right", "type": "sleep", "parameters": {"seconds": 0.05}},
                {"id": "join", "type": "echo"},
            ],
            [
                {"source": "start", "target": "left"},
                {"source": "start", "target": "right"},
                {"source": "left", "target": "join"},
                {"source": "right", "target": "join"},
            ],
        )

    @pytest.mark.asyncio
    async def test_parallel_wave(
        self,
        engine: WorkflowExecutionEngine,
        fan_out: WorkflowDefinition,
        fast_options: ExecutionOptions,
        probe,
    ) -> None:
        result = await engine.execute(fan_out, {}, fast_options)

        assert result.status == ExecutionStatus.COMPLETED
        assert probe.max_running == 2
        assert result.executed_node_ids[-1] == "join"

    @pytest.mark.asyncio
    async def test_sequential_mode(
        self,
        engine: WorkflowExecutionEngine,
        fan_out: WorkflowDefinition,
        fast_options: ExecutionOptions,
        probe,
    ) -> None:
        options = fast_options.model_copy(update={"enable_parallel_execution": False})

        result = await engine.execute(fan_out, {}, options)

        assert result.status == ExecutionStatus.COMPLETED
        assert probe.max_running == 1
        assert result.executed_node_ids == ["start", "left", "right", "join"]


class TestTimeoutAndCancellation:
    """Tests for run-level timeout and cancellation."""

    @pytest.fixture
    def slow_workflow(self) -> WorkflowDefinition:
        return workflow(
            [
                start(),
                {"id": "slow", "type": "sleep", "parameters": {"seconds": 5}},
                {"id": "after", "type": "echo"},
            ],
            [{"source": "start", "target": "slow"}, {"source": "slow", "target": "after"}],
        )

    @pytest.mark.asyncio
    async def test_run_timeout(
        self,
        engine: WorkflowExecutionEngine,
        slow_workflow: WorkflowDefinition,
    ) -> None:
        options = ExecutionOptions(timeout=0.2, node_timeout=10, retry_delay=0)

        result = await engine.execute(slow_workflow, {}, options)

        assert result.status == ExecutionStatus.TIMEOUT
        assert result.error_message == "Execution timed out after 0.2s"
        assert result.executed_node_ids == ["start"]

    @pytest.mark.asyncio
    async def test_cancel_running_execution(
        self,
        engine: WorkflowExecutionEngine,
        slow_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
        probe,
    ) -> None:
        run = asyncio.create_task(
            engine.execute(slow_workflow, {}, fast_options, execution_id="exec-cancel")
        )
        await asyncio.wait_for(probe.started.wait(), timeout=2)
        assert engine.get_execution_status("exec-cancel") == ExecutionStatus.RUNNING

        await engine.cancel("exec-cancel")
        result = await run

        assert result.status == ExecutionStatus.CANCELLED
        assert result.error_message == "Execution cancelled"
        assert result.executed_node_ids == ["start"]
        assert engine.get_execution_status("exec-cancel") == ExecutionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_finished_execution(
        self,
        engine: WorkflowExecutionEngine,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        await engine.execute(linear_workflow, {}, fast_options, execution_id="exec-done")

        with pytest.raises(ExecutionNotRunningError):
            await engine.cancel("exec-done")

    @pytest.mark.asyncio
    async def test_cancel_unknown_execution(self, engine: WorkflowExecutionEngine) -> None:
        with pytest.raises(ExecutionNotFoundError):
            await engine.cancel("missing")


class TestExecutionRegistry:
    """Tests for status lookups and execution ids."""

    @pytest.mark.asyncio
    async def test_result_lookup(
        self,
        engine: WorkflowExecutionEngine,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        result = await engine.execute(linear_workflow, {}, fast_options, execution_id="exec-1")

        assert engine.get_execution_status("exec-1") == ExecutionStatus.COMPLETED
        assert engine.get_execution_result("exec-1") == result
        assert engine.get_execution_result("missing") is None

    def test_status_of_unknown_execution(self, engine: WorkflowExecutionEngine) -> None:
        with pytest.raises(ExecutionNotFoundError):
            engine.get_execution_status("missing")

    @pytest.mark.asyncio
    async def test_duplicate_execution_id(
        self,
        engine: WorkflowExecutionEngine,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        await engine.execute(linear_workflow, {}, fast_options, execution_id="exec-1")

        with pytest.raises(ExecutionError):
            await engine.execute(linear_workflow, {}, fast_options, execution_id="exec-1")

    @pytest.mark.asyncio
    async def test_audit_trail(
        self,
        engine: WorkflowExecutionEngine,
        execution_logger: ExecutionLogger,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        await engine.execute(linear_workflow, {"symbol": "AAPL"}, fast_options, execution_id="e")

        logs = await execution_logger.get_execution_logs("e")
        messages = [entry.message for entry in logs]
        assert messages[0] == "Workflow wf-linear execution started"
        assert messages[-1] == "Workflow wf-linear execution completed"
        assert len(await execution_logger.get_node_logs("e", "http")) == 1

    @pytest.mark.asyncio
    async def test_oldest_finished_runs_are_forgotten(
        self,
        registry,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        engine = WorkflowExecutionEngine(registry, history_limit=2)

        for execution_id in ("e1", "e2", "e3"):
            await engine.execute(linear_workflow, {}, fast_options, execution_id=execution_id)

        assert engine.get_execution_result("e1") is None
        with pytest.raises(ExecutionNotFoundError):
            engine.get_execution_status("e1")
        assert engine.get_execution_status("e2") == ExecutionStatus.COMPLETED
        assert engine.get_execution_result("e3") is not None

    @pytest.mark.asyncio
    async def test_running_executions_are_kept(
        self,
        registry,
        probe,
        linear_workflow: WorkflowDefinition,
        fast_options: ExecutionOptions,
    ) -> None:
        engine = WorkflowExecutionEngine(registry, history_limit=1)
        slow = workflow(
            [start(), {"id": "slow", "type": "sleep", "parameters": {"seconds": 1}}],
            [{"source": "start", "target": "slow"}],
        )
        run = asyncio.create_task(engine.execute(slow, {}, fast_options, execution_id="slow"))
        await asyncio.wait_for(probe.started.wait(), timeout=2)

        await engine.execute(linear_workflow, {}, fast_options, execution_id="e1")
        await engine.execute(linear_workflow, {}, fast_options, execution_id="e2")

        assert engine.get_execution_status("slow") == ExecutionStatus.RUNNING
        assert engine.get_execution_result("e1") is None

        await run

        assert engine.get_execution_status("slow") == ExecutionStatus.COMPLETED
        assert engine.get_execution_result("e2") is None


class TestAuditLogFailures:
    """A broken audit log never leaves a run unfinished."""

    @pytest.mark.asyncio
    async def test_store_failure_does_not_abort_run(
        self,
        registry,
        fast_options: ExecutionOptions,
    ) -> None:
        class UnavailableStore(InMemoryLogStore):
            async def add(self, entry: ExecutionLogEntry) -> None:
                raise RuntimeError("log store unavailable")

        engine = WorkflowExecutionEngine(registry, ExecutionLogger(UnavailableStore()))
        wf = workflow(
            [start(), {"id": "echo", "type": "echo", "parameters": {"ok": True}}],
            [{"source": "start", "target": "echo"}],
        )

        result = await engine.execute(wf, {}, fast_options, execution_id="exec-1")

        assert result.status == ExecutionStatus.COMPLETED
        assert result.output_data["echo"] == {"ok": True}
        assert engine.get_execution_status("exec-1") == ExecutionStatus.COMPLETED
        assert engine.get_execution_result("exec-1") == result

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_run(
        self,
        registry,
        fast_options: ExecutionOptions,
    ) -> None:
        class BrokenLogger(ExecutionLogger):
            async def log_node_execution(self, execution_id, summary) -> None:
                raise RuntimeError("audit write failed")

        engine = WorkflowExecutionEngine(registry, BrokenLogger())
        wf = workflow(
            [start(), {"id": "echo", "type": "echo"}],
            [{"source": "start", "target": "echo"}],
        )

        result = await engine.execute(wf, {}, fast_options, execution_id="exec-1")

        assert result.status == ExecutionStatus.FAILED
        assert result.error_message == "Execution failed: audit write failed"
        assert engine.get_execution_status("exec-1") == ExecutionStatus.FAILED
