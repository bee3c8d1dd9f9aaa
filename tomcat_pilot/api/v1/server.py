"""Tomcat process control endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from tomcat_pilot.api.deps import ManagerDep
from tomcat_pilot.models.server import ReloadOutcome, ServerState, ServerStatus

router = APIRouter()


class ActionResponse(BaseModel):
    """Outcome of a start/stop/kill request."""

    ok: bool
    state: ServerState


class ReloadResponse(BaseModel):
    outcome: ReloadOutcome


class CleanResponse(BaseModel):
    removed: list[str]


class KillResponse(BaseModel):
    killed: int


class PortUpdate(BaseModel):
    """Request to move Tomcat to another HTTP port."""

    port: int = Field(..., description="New HTTP connector port")


@router.get("/status", response_model=ServerStatus, summary="Get server status")
async def get_status(manager: ManagerDep) -> ServerStatus:
    return await manager.status()


@router.post("/start", response_model=ActionResponse, summary="Start Tomcat")
async def start_server(manager: ManagerDep) -> ActionResponse:
    """Spawn Tomcat; readiness is reported on the log stream."""
    ok = await manager.start()
    return ActionResponse(ok=ok, state=manager.state)


@router.post("/stop", response_model=ActionResponse, summary="Stop Tomcat")
async def stop_server(manager: ManagerDep) -> ActionResponse:
    ok = await manager.stop()
    return ActionResponse(ok=ok, state=manager.state)


@router.post("/kill", response_model=KillResponse, summary="Kill Tomcat processes")
async def kill_server(manager: ManagerDep) -> KillResponse:
    return KillResponse(killed=await manager.kill())


@router.post("/reload", response_model=ReloadResponse, summary="Hot-reload the application")
async def reload_server(manager: ManagerDep) -> ReloadResponse:
    return ReloadResponse(outcome=await manager.reload())


@router.post("/clean", response_model=CleanResponse, summary="Clean deployed applications")
async def clean_server(manager: ManagerDep) -> CleanResponse:
    """Kill Tomcat and remove every non-protected webapp plus work/ and temp/."""
    return CleanResponse(removed=await manager.clean())


@router.put("/port", response_model=ServerStatus, summary="Change the HTTP port")
async def update_port(data: PortUpdate, manager: ManagerDep) -> ServerStatus:
    """Rewrite the HTTP connector port, restarting Tomcat if it was running.

    Every change is rolled back when any step fails.
    """
    await manager.update_port(data.port)
    return await manager.status()
