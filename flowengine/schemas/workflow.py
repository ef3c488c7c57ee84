"""Workflow definition schemas.

A workflow definition is the external input the engine builds its graph
from: an ordered node list and a connection list. Keys are accepted in
snake_case or camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from flowengine.schemas.base import BaseSchema


class NodeDefinition(BaseSchema):
    """A node as provided by the workflow definition."""

    id: str = Field(..., min_length=1, description="Node id, unique within the workflow")
    type: str = Field(..., min_length=1, description="Registered node type tag")
    name: str = Field(default="", description="Display name")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw parameters, may contain {{path}} expressions",
        examples=[{"url": "{{input.endpoint}}", "method": "GET"}],
    )
    configuration: dict[str, Any] = Field(
        default_factory=dict,
        description="Static configuration (timeout, maxRetries, retryDelay in ms)",
        examples=[{"timeout": 10000, "maxRetries": 2, "retryDelay": 500}],
    )

    @model_validator(mode="after")
    def default_name(self) -> NodeDefinition:
        if not self.name:
            self.name = self.id
        return self


class ConnectionDefinition(BaseSchema):
    """A directed, ported connection between two nodes."""

    source_node_id: str = Field(
        ..., validation_alias=AliasChoices("source_node_id", "sourceNodeId", "source")
    )
    target_node_id: str = Field(
        ..., validation_alias=AliasChoices("target_node_id", "targetNodeId", "target")
    )
    source_output: str = Field(
        default="default",
        validation_alias=AliasChoices("source_output", "sourceOutput"),
        description="Output label; anything but 'default' makes the edge conditional",
    )
    target_input: str = Field(
        default="default",
        validation_alias=AliasChoices("target_input", "targetInput"),
    )


class WorkflowDefinition(BaseSchema):
    """A complete workflow definition submitted for execution."""

    id: str = Field(default="adhoc", description="Workflow id, opaque to the engine")
    name: str = Field(default="", description="Workflow display name")
    nodes: list[NodeDefinition] = Field(default_factory=list)
    connections: list[ConnectionDefinition] = Field(default_factory=list)
    output_node_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("output_node_id", "outputNodeId"),
        description="Node whose output becomes the run output; all outputs when unset",
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Accept UUIDs and integers as workflow ids."""
        return str(v) if v is not None else "adhoc"


__all__ = ["ConnectionDefinition", "NodeDefinition", "WorkflowDefinition"]
