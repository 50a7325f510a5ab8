from typing import Optional
from fastapi import APIRouter, Depends, status, BackgroundTasks, Query, Request

from freshdock.core.dependencies import get_intake_service, get_optional_session_context
from freshdock.models.auth import SessionContext
from freshdock.models.intake import (
    PublicIntakeSubmit, PublicIntakeResult, HistoryResponse,
    ShortLinkResolved, PublicDispatchStatus
)
from freshdock.services.intake import IntakeService

router = APIRouter()

# ==============================================================================
# NO ACCOUNT REQUIRED
# ==============================================================================


@router.post(
    "/intake",
    response_model=PublicIntakeResult,
    status_code=status.HTTP_200_OK,
    summary="Submit via intake link",
    description="Growers without an account submit a dispatch to the receiver behind the intake token."
)
def submit_intake(
    data: PublicIntakeSubmit,
    background_tasks: BackgroundTasks,
    service: IntakeService = Depends(get_intake_service)
):
    return service.submit(data, background_tasks)


@router.get(
    "/intake/history",
    response_model=HistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Past submissions",
    description="The most recent dispatches this grower sent through the intake link."
)
def intake_history(
    intake_token: str = Query(..., min_length=1),
    grower_name: str = Query(..., min_length=1, max_length=200),
    service: IntakeService = Depends(get_intake_service)
):
    return service.history(intake_token, grower_name)


@router.get(
    "/links/{short_code}",
    response_model=ShortLinkResolved,
    status_code=status.HTTP_200_OK,
    summary="Resolve short link",
    description="Turns a short intake link into the intake token and pre-filled grower details."
)
def resolve_short_link(
    short_code: str,
    service: IntakeService = Depends(get_intake_service)
):
    return service.resolve_short_link(short_code)


@router.get(
    "/dispatches/{qr_code_token}",
    response_model=PublicDispatchStatus,
    status_code=status.HTTP_200_OK,
    summary="Live dispatch status",
    description="What the QR code on a delivery advice opens. The scan is logged on the timeline."
)
def public_dispatch_status(
    qr_code_token: str,
    request: Request,
    background_tasks: BackgroundTasks,
    ctx: Optional[SessionContext] = Depends(get_optional_session_context),
    service: IntakeService = Depends(get_intake_service)
):
    return service.public_status(
        qr_code_token,
        ctx=ctx,
        user_agent=request.headers.get("user-agent"),
        background_tasks=background_tasks,
    )
