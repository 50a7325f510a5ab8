import uuid
from typing import List
from fastapi import APIRouter, Depends, status

from freshdock.core.dependencies import get_session_context, get_intake_service
from freshdock.models.auth import SessionContext
from freshdock.models.intake import IntakeLinkCreate, IntakeLinkRead
from freshdock.services.intake import IntakeService

router = APIRouter()


@router.post(
    "",
    response_model=IntakeLinkRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create intake link",
    description="A short link pre-filled with one grower's details."
)
def create_link(
    data: IntakeLinkCreate,
    ctx: SessionContext = Depends(get_session_context),
    service: IntakeService = Depends(get_intake_service)
):
    return service.create_link(ctx, data)


@router.get(
    "",
    response_model=List[IntakeLinkRead],
    status_code=status.HTTP_200_OK,
    summary="List intake links"
)
def list_links(
    ctx: SessionContext = Depends(get_session_context),
    service: IntakeService = Depends(get_intake_service)
):
    return service.list_links(ctx)


@router.delete(
    "/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete intake link"
)
def delete_link(
    link_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: IntakeService = Depends(get_intake_service)
):
    service.delete_link(ctx, link_id)
