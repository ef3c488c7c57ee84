"""HTTP API of the flow engine.

Versioned routers are collected under a single root router that
``flowengine.main`` mounts at ``settings.API_V1_PREFIX``.
"""

from fastapi import APIRouter

from flowengine.api.v1 import router as v1_router

router = APIRouter()
router.include_router(v1_router, tags=["v1"])

__all__ = ["router"]
