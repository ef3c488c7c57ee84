"""Node type API Router.

Lists the node kinds the engine can execute, with their parameter
definitions.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status

from flowengine.api.deps import RegistryDep  # noqa: TC001 - Required at runtime for FastAPI
from flowengine.schemas.nodes import NodeTypeDefinition
from flowengine.services.workflow.nodes.errors import NodeNotFoundError

router = APIRouter()

NodeTypePath = Annotated[
    str,
    Path(
        ...,
        description="Type tag of the node kind",
        examples=["http_request"],
    ),
]


@router.get(
    "",
    response_model=list[NodeTypeDefinition],
    summary="List node types",
    description="List every registered node kind.",
)
async def list_node_types(registry: RegistryDep) -> list[NodeTypeDefinition]:
    return registry.list_definitions()


@router.get(
    "/{node_type}",
    response_model=NodeTypeDefinition,
    summary="Get node type",
    description="Get the definition of one node kind.",
)
async def get_node_type(registry: RegistryDep, node_type: NodeTypePath) -> NodeTypeDefinition:
    """Get a node kind definition.

    Raises:
        HTTPException: 404 if the type is not registered.
    """
    try:
        return registry.get_definition(node_type)
    except NodeNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
