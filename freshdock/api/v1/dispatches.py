import uuid
from typing import List, Optional
from fastapi import (
    APIRouter, Depends, status, BackgroundTasks, Query, UploadFile, File, Response
)
from fastapi.responses import StreamingResponse

from freshdock.core.config import settings
from freshdock.core.dependencies import (
    get_session_context, get_dispatch_service, get_delivery_advice_service
)
from freshdock.core.realtime import broker, sse_stream
from freshdock.db.schema import DispatchStatus
from freshdock.models.auth import SessionContext
from freshdock.models.delivery_advice import DeliveryAdviceNumberRead
from freshdock.models.dispatch import (
    DispatchCreate, DispatchUpdate, DispatchRead, DispatchDetailRead,
    DispatchEventRead, ConNoteAttach, PickupRequest, EtaUpdate,
    ArrivalRequest, ReceiveRequest, IssueCreate, LotNumberUpdate
)
from freshdock.services.delivery_advice import DeliveryAdviceService
from freshdock.services.dispatch import DispatchService

router = APIRouter()


# ==============================================================================
# CREATE & READ
# ==============================================================================

@router.post(
    "",
    response_model=DispatchDetailRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a dispatch",
    description="Creates a pending dispatch with its line items. Logs 'created' and 'submitted'."
)
def create_dispatch(
    data: DispatchCreate,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.create_dispatch(ctx, data, background_tasks)


@router.get(
    "",
    response_model=List[DispatchRead],
    status_code=status.HTTP_200_OK,
    summary="List dispatches",
    description="Dispatches the caller is a party to, newest dispatch date first."
)
def list_dispatches(
    status_filter: Optional[DispatchStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.list_dispatches(ctx, status_filter, limit, offset)


@router.get(
    "/{dispatch_id}",
    response_model=DispatchDetailRead,
    status_code=status.HTTP_200_OK,
    summary="Get dispatch",
    description="The dispatch with its items, receiving issues and timeline."
)
def get_dispatch(
    dispatch_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.get_dispatch_detail(ctx, dispatch_id)


@router.get(
    "/{dispatch_id}/timeline",
    response_model=List[DispatchEventRead],
    status_code=status.HTTP_200_OK,
    summary="Get timeline",
    description="All lifecycle events of the dispatch in the order they were written."
)
def get_timeline(
    dispatch_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.get_timeline(ctx, dispatch_id)


@router.get(
    "/{dispatch_id}/events/stream",
    status_code=status.HTTP_200_OK,
    summary="Live timeline",
    description="Server-sent events: the stored timeline, then new events as they are committed."
)
def stream_events(
    dispatch_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    dispatch = service.get_visible_dispatch(ctx, dispatch_id)

    # Subscribe before reading history so nothing falls between the two
    subscription = broker.subscribe(dispatch.id)
    history = service.get_timeline(ctx, dispatch.id)

    return StreamingResponse(
        sse_stream(subscription, history, settings.stream_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ==============================================================================
# GROWER ACTIONS
# ==============================================================================

@router.patch(
    "/{dispatch_id}",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Edit dispatch",
    description="Amend header fields while the dispatch is still pending."
)
def edit_dispatch(
    dispatch_id: uuid.UUID,
    data: DispatchUpdate,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.edit_dispatch(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/photos",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Add a photo",
    description="Attach a photo of the consignment."
)
def add_photo(
    dispatch_id: uuid.UUID,
    file: UploadFile = File(...),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.add_photo(ctx, dispatch_id, file)


# ==============================================================================
# TRANSPORT
# ==============================================================================

@router.post(
    "/{dispatch_id}/con-note",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Attach con note number",
    description="Record the carrier's consignment note number."
)
def attach_con_note(
    dispatch_id: uuid.UUID,
    data: ConNoteAttach,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.attach_con_note(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/con-note/photo",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Upload con note photo",
    description="Attach a photo or scan of the carrier's con note."
)
def attach_con_note_photo(
    dispatch_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.attach_con_note_photo(ctx, dispatch_id, file, background_tasks)


@router.post(
    "/{dispatch_id}/pickup",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Mark picked up",
    description="pending -> in-transit. Requires a con note number, stored or supplied here."
)
def mark_picked_up(
    dispatch_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: PickupRequest = PickupRequest(),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.mark_picked_up(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/eta",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Update ETA"
)
def update_eta(
    dispatch_id: uuid.UUID,
    data: EtaUpdate,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.update_eta(ctx, dispatch_id, data, background_tasks)


# ==============================================================================
# RECEIVING
# ==============================================================================

@router.post(
    "/{dispatch_id}/arrive",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Mark arrived",
    description="in-transit -> arrived."
)
def mark_arrived(
    dispatch_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: ArrivalRequest = ArrivalRequest(),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.mark_arrived(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/receive",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Confirm received",
    description="arrived -> received, or -> issue when any receiving issue was flagged."
)
def confirm_received(
    dispatch_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: ReceiveRequest = ReceiveRequest(),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.confirm_received(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/issues",
    response_model=DispatchDetailRead,
    status_code=status.HTTP_201_CREATED,
    summary="Flag an issue",
    description="Records a receiving issue and moves the dispatch to 'issue'."
)
def flag_issue(
    dispatch_id: uuid.UUID,
    data: IssueCreate,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.flag_issue(ctx, dispatch_id, data, background_tasks)


@router.post(
    "/{dispatch_id}/issues/photo",
    status_code=status.HTTP_201_CREATED,
    summary="Upload issue evidence",
    description="Stores a photo and returns its URL for use in 'Flag an issue'."
)
def upload_issue_photo(
    dispatch_id: uuid.UUID,
    file: UploadFile = File(...),
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return {"url": service.upload_issue_photo(ctx, dispatch_id, file)}


@router.put(
    "/{dispatch_id}/lot-number",
    response_model=DispatchRead,
    status_code=status.HTTP_200_OK,
    summary="Assign lot number",
    description="Book the consignment into inventory under an internal lot number."
)
def assign_lot_number(
    dispatch_id: uuid.UUID,
    data: LotNumberUpdate,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DispatchService = Depends(get_dispatch_service)
):
    return service.assign_lot_number(ctx, dispatch_id, data, background_tasks)


# ==============================================================================
# DELIVERY ADVICE
# ==============================================================================

@router.post(
    "/{dispatch_id}/delivery-advice/number",
    response_model=DeliveryAdviceNumberRead,
    status_code=status.HTTP_200_OK,
    summary="Get or assign delivery advice number",
    description="Idempotent: returns the existing number when one was already assigned."
)
def assign_delivery_advice_number(
    dispatch_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: DeliveryAdviceService = Depends(get_delivery_advice_service)
):
    return service.assign_delivery_advice_number(ctx, dispatch_id)


@router.post(
    "/{dispatch_id}/delivery-advice",
    status_code=status.HTTP_200_OK,
    summary="Generate delivery advice",
    description=(
        "Renders the printable delivery advice PDF. Assigns the delivery advice "
        "number on first use and logs 'delivery_advice_generated' on every call."
    ),
    response_class=Response,
)
def download_delivery_advice(
    dispatch_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    ctx: SessionContext = Depends(get_session_context),
    service: DeliveryAdviceService = Depends(get_delivery_advice_service)
):
    number, pdf_bytes = service.generate(ctx, dispatch_id, background_tasks)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{number}.pdf"'},
        background=background_tasks,
    )
