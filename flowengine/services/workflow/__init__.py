"""Workflow graph and execution package.

Components:
Graph:
- Graph, Node, Edge: Directed graph of a workflow definition
- GraphBuilder: Builds graphs from definitions and validates them
- GraphAlgorithms: Cycle detection, reachability, Kahn ordering
- TopologicalSorter: Linear order, parallel groups and ready sets

Execution:
- WorkflowExecutionEngine: Runs a workflow to a terminal status
- NodeExecutor: Runs one node with timeout and retry
- ExecutionContext: Shared per-run store for node results and variables
- ExecutionLogger: Audit trail with in-memory and database stores

Example:
    >>> from flowengine.services.workflow import WorkflowExecutionEngine
    >>> engine = WorkflowExecutionEngine()
    >>> result = await engine.execute(workflow, {"symbol": "AAPL"})
"""

from flowengine.services.workflow.algorithms import GraphAlgorithms
from flowengine.services.workflow.builder import GraphBuilder
from flowengine.services.workflow.context import RESERVED_KEYS, ExecutionContext
from flowengine.services.workflow.engine import WorkflowExecutionEngine
from flowengine.services.workflow.exceptions import (
    ContextWriteError,
    CycleDetectedError,
    ExecutionCancelledError,
    ExecutionError,
    ExecutionNotFoundError,
    ExecutionNotRunningError,
    GraphBuildError,
    GraphValidationError,
    NodeExecutionError,
    NodeTimeoutError,
    WorkflowError,
)
from flowengine.services.workflow.execution_logger import (
    ExecutionLogger,
    InMemoryLogStore,
    SqlAlchemyLogStore,
    create_execution_logger,
)
from flowengine.services.workflow.expressions import evaluate, evaluate_parameters
from flowengine.services.workflow.graph import DEFAULT_PORT, Edge, Graph, Node
from flowengine.services.workflow.node_executor import NodeExecutor
from flowengine.services.workflow.sorter import TopologicalSorter

__all__ = [
    "DEFAULT_PORT",
    "RESERVED_KEYS",
    # Graph
    "Edge",
    "Graph",
    "GraphAlgorithms",
    "GraphBuilder",
    "Node",
    "TopologicalSorter",
    # Execution
    "ExecutionContext",
    "ExecutionLogger",
    "InMemoryLogStore",
    "NodeExecutor",
    "SqlAlchemyLogStore",
    "WorkflowExecutionEngine",
    "create_execution_logger",
    "evaluate",
    "evaluate_parameters",
    # Exceptions
    "ContextWriteError",
    "CycleDetectedError",
    "ExecutionCancelledError",
    "ExecutionError",
    "ExecutionNotFoundError",
    "ExecutionNotRunningError",
    "GraphBuildError",
    "GraphValidationError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "WorkflowError",
]
