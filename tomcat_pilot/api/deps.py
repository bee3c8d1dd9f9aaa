"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends, Request

from tomcat_pilot.core.container import Services
from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.events import LogEventBus
from tomcat_pilot.core.orchestrator import DeploymentOrchestrator
from tomcat_pilot.server.lifecycle import TomcatManager


async def get_services(request: Request) -> Services:
    """Get the services created by the application lifespan."""
    return request.app.state.services


async def get_manager(services: Annotated[Services, Depends(get_services)]) -> TomcatManager:
    return services.manager


async def get_orchestrator(
    services: Annotated[Services, Depends(get_services)],
) -> DeploymentOrchestrator:
    return services.orchestrator


async def get_bus(services: Annotated[Services, Depends(get_services)]) -> LogEventBus:
    return services.bus


async def get_context(services: Annotated[Services, Depends(get_services)]) -> ServerContext:
    return services.context


# Type aliases for cleaner signatures
ServicesDep = Annotated[Services, Depends(get_services)]
ManagerDep = Annotated[TomcatManager, Depends(get_manager)]
OrchestratorDep = Annotated[DeploymentOrchestrator, Depends(get_orchestrator)]
BusDep = Annotated[LogEventBus, Depends(get_bus)]
ContextDep = Annotated[ServerContext, Depends(get_context)]
