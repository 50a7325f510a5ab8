import uuid
from typing import List
from fastapi import APIRouter, Depends, status

from freshdock.core.dependencies import get_session_context, get_connection_service
from freshdock.models.auth import SessionContext
from freshdock.models.connection import ConnectionRead, ConnectionRequest, ConnectionRespond
from freshdock.services.connection import ConnectionService

router = APIRouter()


@router.get(
    "",
    response_model=List[ConnectionRead],
    status_code=status.HTTP_200_OK,
    summary="List connections",
    description="Every connection of the caller's business, on either side."
)
def list_connections(
    ctx: SessionContext = Depends(get_session_context),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.list_connections(ctx)


@router.post(
    "",
    response_model=ConnectionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request connection",
    description="A grower asks a receiver for permission to send dispatches."
)
def request_connection(
    data: ConnectionRequest,
    ctx: SessionContext = Depends(get_session_context),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.request_connection(ctx, data)


@router.post(
    "/{connection_id}/respond",
    response_model=ConnectionRead,
    status_code=status.HTTP_200_OK,
    summary="Respond to request",
    description="Receiver staff approve or reject a grower's request."
)
def respond_to_request(
    connection_id: uuid.UUID,
    data: ConnectionRespond,
    ctx: SessionContext = Depends(get_session_context),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.respond(ctx, connection_id, data.approve)
