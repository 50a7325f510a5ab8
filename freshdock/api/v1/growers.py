from fastapi import APIRouter, Depends, status, BackgroundTasks

from freshdock.core.dependencies import get_session_context, get_grower_service
from freshdock.models.auth import SessionContext
from freshdock.models.grower import GrowerSetup, GrowerSetupResult
from freshdock.services.grower import GrowerService

router = APIRouter()


@router.post(
    "/setup",
    response_model=GrowerSetupResult,
    status_code=status.HTTP_200_OK,
    summary="Provision a grower login",
    description="Admin only. 'invite' emails a set-password link; 'create_with_password' sets a temporary password."
)
def setup_grower(
    data: GrowerSetup,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: GrowerService = Depends(get_grower_service)
):
    return service.setup_grower(ctx, data, background_tasks)
