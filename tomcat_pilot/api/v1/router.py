"""Main router for API v1."""

from fastapi import APIRouter

from tomcat_pilot.api.v1 import deploy, health, logs, server

router = APIRouter(prefix="/v1")

# Include sub-routers
router.include_router(health.router, tags=["health"])
router.include_router(server.router, prefix="/server", tags=["server"])
router.include_router(deploy.router, prefix="/deploy", tags=["deploy"])
router.include_router(logs.router, prefix="/logs", tags=["logs"])
