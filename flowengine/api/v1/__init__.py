"""API v1 routing configuration.

This module defines all v1 API routes.
"""

from fastapi import APIRouter

from flowengine.api.v1 import executions, nodes

router = APIRouter()

# Domain routers
router.include_router(executions.router, prefix="/executions", tags=["Executions"])
router.include_router(nodes.router, prefix="/nodes", tags=["Nodes"])


@router.get("/status", tags=["Status"])
async def api_status() -> dict[str, str]:
    """API v1 status check."""
    return {"status": "ok", "version": "v1"}
