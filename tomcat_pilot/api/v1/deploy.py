"""Deployment endpoints."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from tomcat_pilot.api.deps import ContextDep, OrchestratorDep
from tomcat_pilot.models.deployment import (
    BuildStrategy,
    DeploymentRequest,
    DeploymentResult,
    SaveReason,
)

router = APIRouter()


class AutoDeployRequest(BaseModel):
    """A file save notification from an editor."""

    reason: SaveReason = SaveReason.MANUAL


class DeployModeRequest(BaseModel):
    """Set the auto-deploy mode; an empty body cycles to the next mode."""

    mode: Literal["On Save", "On Shortcut", "Disabled"] | None = None
    build_type: BuildStrategy | None = None


class DeployModeResponse(BaseModel):
    mode: str
    build_type: str


@router.post("", response_model=DeploymentResult, summary="Build and deploy the project")
async def deploy(data: DeploymentRequest, orchestrator: OrchestratorDep) -> DeploymentResult:
    """Run one deploy and wait for the build to finish.

    Returns status "skipped" when another deploy is already running.
    """
    return await orchestrator.deploy(data.strategy)


@router.post("/auto", response_model=DeploymentResult, summary="Deploy on file save")
async def auto_deploy(data: AutoDeployRequest, orchestrator: OrchestratorDep) -> DeploymentResult:
    return await orchestrator.auto_deploy(data.reason)


@router.post("/mode", response_model=DeployModeResponse, summary="Change the auto-deploy mode")
async def set_deploy_mode(
    data: DeployModeRequest,
    orchestrator: OrchestratorDep,
    context: ContextDep,
) -> DeployModeResponse:
    if data.mode is None:
        orchestrator.toggle_deploy_mode()
    else:
        orchestrator.set_deploy_mode(
            data.mode, data.build_type.value if data.build_type else None
        )
    return DeployModeResponse(
        mode=context.auto_deploy_mode,
        build_type=context.auto_deploy_build_type,
    )
