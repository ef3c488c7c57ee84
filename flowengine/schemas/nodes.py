"""Node type definition schemas.

Each node kind describes itself with a ``NodeTypeDefinition``: the
operations it supports and the parameters each operation takes. The
definition drives required-parameter validation and is served by the
``/nodes`` API.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from flowengine.models.enums import NodeCategory, ParameterType
from flowengine.schemas.base import BaseSchema


class ParameterOption(BaseSchema):
    """A selectable value of an ``options`` parameter."""

    name: str
    value: Any


class NodeParameter(BaseSchema):
    """Declaration of one node parameter.

    Attributes:
        name: Key in the node's parameter map.
        display_name: Human readable label.
        type: Declared value type.
        required: Execution fails before node logic runs when missing.
        default: Value used by the node when the parameter is absent.
        options: Allowed values for ``options`` parameters.
    """

    name: str
    display_name: str = ""
    type: ParameterType = ParameterType.STRING
    required: bool = False
    default: Any = None
    description: str = ""
    options: list[ParameterOption] = Field(default_factory=list)


class NodeOperation(BaseSchema):
    name: str
    display_name: str = ""
    description: str = ""
    parameters: list[NodeParameter] = Field(default_factory=list)


class NodeTypeDefinition(BaseSchema):
    """Declarative description of a node kind."""

    type: str
    display_name: str
    category: NodeCategory
    description: str = ""
    operations: list[NodeOperation] = Field(default_factory=list)

    @property
    def parameters(self) -> list[NodeParameter]:
        """All parameters across operations, first declaration wins."""
        seen: dict[str, NodeParameter] = {}
        for operation in self.operations:
            for parameter in operation.parameters:
                seen.setdefault(parameter.name, parameter)
        return list(seen.values())

    @property
    def required_parameters(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]


__all__ = [
    "NodeOperation",
    "NodeParameter",
    "NodeTypeDefinition",
    "ParameterOption",
]
