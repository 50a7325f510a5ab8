import uuid
import secrets
from datetime import datetime
from typing import List, Optional
from fastapi import HTTPException, BackgroundTasks, UploadFile, status
from loguru import logger
from sqlmodel import Session, select, or_, func

from freshdock.core.audit import append_dispatch_event, _publish_events
from freshdock.db.schema import (
    Business, BusinessType, Connection, ConnectionStatus,
    Dispatch, DispatchItem, DispatchEvent, DispatchEventType,
    DispatchStatus, ReceivingIssue, UserRole
)
from freshdock.models.auth import SessionContext
from freshdock.models.dispatch import (
    DispatchCreate, DispatchUpdate, DispatchRead, DispatchDetailRead,
    DispatchItemRead, DispatchEventRead, ReceivingIssueRead,
    ConNoteAttach, PickupRequest, EtaUpdate, ArrivalRequest,
    ReceiveRequest, IssueCreate, LotNumberUpdate,
    GrowerRef, LinkedBusinessGrower, FreeTextGrower
)
from freshdock.services import lifecycle
from freshdock.services.lifecycle import TransitionError
from freshdock.utils.file_storage import save_upload_file
from freshdock.utils.weights import line_total_weight

DISPLAY_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_display_id() -> str:
    return "FD-" + "".join(secrets.choice(DISPLAY_ID_ALPHABET) for _ in range(6))


def grower_ref(dispatch: Dispatch) -> GrowerRef:
    """Rebuilds the grower identity union from the stored columns."""
    if dispatch.supplier_business_id:
        return LinkedBusinessGrower(business_id=dispatch.supplier_business_id)
    return FreeTextGrower(name=dispatch.grower_name, code=dispatch.grower_code)


def to_dispatch_read(dispatch: Dispatch) -> DispatchRead:
    return DispatchRead.model_validate(dispatch, update={
        "grower": grower_ref(dispatch),
        "display_status": lifecycle.display_status(
            dispatch.status, dispatch.internal_lot_number),
    })


def to_item_read(item: DispatchItem) -> DispatchItemRead:
    return DispatchItemRead.model_validate(item, update={
        "total_weight": line_total_weight(item.quantity, item.unit_weight, item.weight)
    })


def transition_http_error(error: TransitionError) -> HTTPException:
    """Missing inputs are the caller's to fix (400); illegal moves are conflicts (409)."""
    code = status.HTTP_400_BAD_REQUEST if error.precondition else status.HTTP_409_CONFLICT
    return HTTPException(status_code=code, detail=error.message)


class DispatchService:
    def __init__(self, session: Session):
        self.session = session

    # ==========================================================================
    # ACCESS HELPERS
    # ==========================================================================

    def _visibility_clause(self, ctx: SessionContext):
        if ctx.is_admin:
            return None
        if ctx.role == UserRole.STAFF:
            return Dispatch.receiver_business_id == ctx.business_id
        if ctx.role == UserRole.TRANSPORTER:
            return Dispatch.transporter_business_id == ctx.business_id
        clauses = [Dispatch.supplier_id == ctx.user_id]
        if ctx.business_id:
            clauses.append(Dispatch.supplier_business_id == ctx.business_id)
        return or_(*clauses)

    def get_visible_dispatch(self, ctx: SessionContext, dispatch_id: uuid.UUID) -> Dispatch:
        """
        Retrieves a dispatch the caller is a party to. Foreign dispatches are
        reported as missing rather than forbidden.
        """
        statement = select(Dispatch).where(Dispatch.id == dispatch_id)
        clause = self._visibility_clause(ctx)
        if clause is not None:
            statement = statement.where(clause)

        dispatch = self.session.exec(statement).first()
        if not dispatch:
            logger.warning(f"Dispatch {dispatch_id} not visible to user {ctx.user_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Dispatch not found."
            )
        return dispatch

    def _require_receiving_side(self, ctx: SessionContext, dispatch: Dispatch):
        if ctx.is_admin:
            return
        if not ctx.can_receive or dispatch.receiver_business_id != ctx.business_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the receiving business can do this."
            )

    def _require_supplier_side(self, ctx: SessionContext, dispatch: Dispatch):
        if ctx.is_admin:
            return
        owns = dispatch.supplier_id == ctx.user_id or (
            ctx.business_id is not None and dispatch.supplier_business_id == ctx.business_id
        )
        if ctx.role != UserRole.SUPPLIER or not owns:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the grower who sent this dispatch can do this."
            )

    def commit_events(
        self,
        dispatch: Dispatch,
        events: List[DispatchEvent],
        background_tasks: Optional[BackgroundTasks],
    ) -> List[DispatchEventRead]:
        """
        Commits the mutation and its events together, then hands the events to
        the realtime feed as a best-effort side effect.
        """
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception(f"Persisting dispatch {dispatch.id} failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not save the dispatch. Please try again."
            )

        self.session.refresh(dispatch)
        reads = [DispatchEventRead.model_validate(event) for event in events]

        if background_tasks is not None:
            background_tasks.add_task(_publish_events, reads)
        else:
            _publish_events(reads)
        return reads

    def unique_display_id(self) -> str:
        for _ in range(20):
            candidate = generate_display_id()
            taken = self.session.exec(
                select(Dispatch.id).where(Dispatch.display_id == candidate)
            ).first()
            if not taken:
                return candidate
        raise HTTPException(
            status_code=500, detail="Could not allocate a dispatch reference.")

    def _check_receiver(self, ctx: SessionContext, receiver_id: uuid.UUID,
                        supplier_business_id: Optional[uuid.UUID]) -> Business:
        receiver = self.session.get(Business, receiver_id)
        if not receiver or receiver.business_type != BusinessType.RECEIVER:
            raise HTTPException(
                status_code=404, detail="Receiving business not found.")

        if ctx.role == UserRole.SUPPLIER and not ctx.is_admin:
            approved = None
            if supplier_business_id:
                approved = self.session.exec(
                    select(Connection)
                    .where(Connection.supplier_business_id == supplier_business_id)
                    .where(Connection.receiver_business_id == receiver_id)
                    .where(Connection.status == ConnectionStatus.APPROVED)
                ).first()
            if not approved:
                raise HTTPException(
                    status_code=403,
                    detail=f"You are not connected with {receiver.name}. Request a connection first."
                )
        return receiver

    # ==========================================================================
    # CREATE
    # ==========================================================================

    def create_dispatch(
        self,
        ctx: SessionContext,
        data: DispatchCreate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchDetailRead:
        """
        Creates a dispatch in 'pending' with its items and logs 'created' then
        'submitted'.
        """
        if ctx.role == UserRole.TRANSPORTER:
            raise HTTPException(403, "Transporters cannot submit dispatches.")

        # 1. Resolve the grower identity into the denormalized columns
        supplier_business_id = None
        if isinstance(data.grower, LinkedBusinessGrower):
            grower_business = self.session.get(Business, data.grower.business_id)
            if not grower_business or grower_business.business_type != BusinessType.SUPPLIER:
                raise HTTPException(404, "Grower business not found.")
            if not ctx.is_admin and ctx.role == UserRole.SUPPLIER \
                    and grower_business.id != ctx.business_id:
                raise HTTPException(403, "You can only submit for your own business.")
            supplier_business_id = grower_business.id
            grower_name = grower_business.name
            grower_code = grower_business.grower_code
        else:
            grower_name = data.grower.name.strip()
            grower_code = (data.grower.code or "").strip() or None

        try:
            lifecycle.validate_new_dispatch(data.items, grower_name)
        except TransitionError as e:
            raise transition_http_error(e)

        # 2. Resolve the receiver
        receiver_id = data.receiver_business_id
        if ctx.role == UserRole.STAFF and not ctx.is_admin:
            # Staff keying in a delivery on a grower's behalf can only address themselves
            receiver_id = ctx.business_id
        if receiver_id:
            self._check_receiver(ctx, receiver_id, supplier_business_id)

        # --- START TRANSACTION ---
        dispatch = Dispatch(
            display_id=self.unique_display_id(),
            qr_code_token=secrets.token_urlsafe(16),
            supplier_id=ctx.user_id,
            supplier_business_id=supplier_business_id,
            receiver_business_id=receiver_id,
            grower_name=grower_name,
            grower_code=grower_code,
            dispatch_date=data.dispatch_date,
            expected_arrival=data.expected_arrival,
            estimated_arrival_window_start=data.estimated_arrival_window_start,
            estimated_arrival_window_end=data.estimated_arrival_window_end,
            carrier=(data.carrier or "").strip() or None,
            truck_number=(data.truck_number or "").strip() or None,
            transporter_con_note_number=(data.con_note_number or "").strip(),
            temperature_zone=data.temperature_zone,
            commodity_class=data.commodity_class,
            total_pallets=data.total_pallets,
            notes=(data.notes or "").strip() or None,
            photos=list(data.photos),
            status=DispatchStatus.PENDING,
        )
        self.session.add(dispatch)
        self.session.flush()

        for position, item in enumerate(data.items):
            self.session.add(DispatchItem(
                dispatch_id=dispatch.id,
                position=position,
                product=item.product.strip(),
                variety=(item.variety or "").strip() or None,
                size=(item.size or "").strip() or None,
                tray_type=(item.tray_type or "").strip() or None,
                quantity=item.quantity,
                unit_weight=item.unit_weight or None,
                weight=line_total_weight(item.quantity, item.unit_weight, None),
            ))

        events = [
            append_dispatch_event(
                self.session, dispatch.id, DispatchEventType.CREATED,
                ctx.user_id, ctx.actor_role,
                {"source": "app", "grower_name": grower_name}
            ),
            append_dispatch_event(
                self.session, dispatch.id, DispatchEventType.SUBMITTED,
                ctx.user_id, ctx.actor_role, {}
            ),
        ]
        self.commit_events(dispatch, events, background_tasks)

        logger.info(
            f"Dispatch {dispatch.display_id} submitted by {ctx.user_id} for {grower_name}")
        return self.get_dispatch_detail(ctx, dispatch.id)

    # ==========================================================================
    # READS
    # ==========================================================================

    def list_dispatches(
        self,
        ctx: SessionContext,
        status_filter: Optional[DispatchStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DispatchRead]:
        statement = select(Dispatch)
        clause = self._visibility_clause(ctx)
        if clause is not None:
            statement = statement.where(clause)
        if status_filter:
            statement = statement.where(Dispatch.status == status_filter)

        statement = (
            statement
            .order_by(Dispatch.dispatch_date.desc(), Dispatch.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [to_dispatch_read(d) for d in self.session.exec(statement).all()]

    def get_items(self, dispatch_id: uuid.UUID) -> List[DispatchItem]:
        return self.session.exec(
            select(DispatchItem)
            .where(DispatchItem.dispatch_id == dispatch_id)
            .order_by(DispatchItem.position)
        ).all()

    def get_events(self, dispatch_id: uuid.UUID) -> List[DispatchEvent]:
        return self.session.exec(
            select(DispatchEvent)
            .where(DispatchEvent.dispatch_id == dispatch_id)
            .order_by(DispatchEvent.sequence)
        ).all()

    def count_issues(self, dispatch_id: uuid.UUID) -> int:
        return self.session.exec(
            select(func.count(ReceivingIssue.id))
            .where(ReceivingIssue.dispatch_id == dispatch_id)
        ).one()

    def get_dispatch_detail(self, ctx: SessionContext, dispatch_id: uuid.UUID) -> DispatchDetailRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        issues = self.session.exec(
            select(ReceivingIssue)
            .where(ReceivingIssue.dispatch_id == dispatch.id)
            .order_by(ReceivingIssue.created_at)
        ).all()

        base = to_dispatch_read(dispatch)
        return DispatchDetailRead(
            **base.model_dump(exclude={"grower"}),
            grower=base.grower,
            items=[to_item_read(i) for i in self.get_items(dispatch.id)],
            issues=[ReceivingIssueRead.model_validate(i) for i in issues],
            events=[DispatchEventRead.model_validate(e) for e in self.get_events(dispatch.id)],
        )

    def get_timeline(self, ctx: SessionContext, dispatch_id: uuid.UUID) -> List[DispatchEventRead]:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        return [DispatchEventRead.model_validate(e) for e in self.get_events(dispatch.id)]

    # ==========================================================================
    # LIFECYCLE ACTIONS
    # ==========================================================================

    def edit_dispatch(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: DispatchUpdate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_supplier_side(ctx, dispatch)
        try:
            lifecycle.check_edit(dispatch.status)
        except TransitionError as e:
            raise transition_http_error(e)

        update_data = data.model_dump(exclude_unset=True)
        changed = {}
        for key, value in update_data.items():
            if getattr(dispatch, key) != value:
                setattr(dispatch, key, value)
                changed[key] = value.isoformat() if hasattr(value, "isoformat") else value

        if not changed:
            return to_dispatch_read(dispatch)

        self.session.add(dispatch)
        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.EDITED,
            ctx.user_id, ctx.actor_role, {"fields": sorted(changed), "changes": changed}
        )
        self.commit_events(dispatch, [event], background_tasks)
        logger.info(f"Dispatch {dispatch.display_id} edited: {sorted(changed)}")
        return to_dispatch_read(dispatch)

    def attach_con_note(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: ConNoteAttach,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        try:
            lifecycle.check_con_note(dispatch.status)
        except TransitionError as e:
            raise transition_http_error(e)

        number = data.con_note_number.strip()
        if not number:
            raise HTTPException(400, "Con note number cannot be blank.")

        dispatch.transporter_con_note_number = number
        if data.transporter_notes is not None:
            dispatch.transporter_notes = data.transporter_notes
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.CON_NOTE_ATTACHED,
            ctx.user_id, ctx.actor_role, {"con_note_number": number}
        )
        self.commit_events(dispatch, [event], background_tasks)
        return to_dispatch_read(dispatch)

    def attach_con_note_photo(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        upload: UploadFile,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        try:
            lifecycle.check_con_note(dispatch.status)
        except TransitionError as e:
            raise transition_http_error(e)

        url = save_upload_file(upload, "con-note-photos", dispatch.id)
        dispatch.transporter_con_note_photo_url = url
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.CON_NOTE_ATTACHED,
            ctx.user_id, ctx.actor_role,
            {"photo_url": url, "con_note_number": dispatch.transporter_con_note_number or None}
        )
        self.commit_events(dispatch, [event], background_tasks)
        return to_dispatch_read(dispatch)

    def add_photo(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        upload: UploadFile,
    ) -> DispatchRead:
        """Attaches a grower photo. Not a lifecycle event, so no timeline row."""
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_supplier_side(ctx, dispatch)

        url = save_upload_file(upload, "dispatch-photos", dispatch.id)
        dispatch.photos = [*(dispatch.photos or []), url]
        self.session.add(dispatch)
        self.commit_events(dispatch, [], None)
        return to_dispatch_read(dispatch)

    def upload_issue_photo(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        upload: UploadFile,
    ) -> str:
        """Stores receiving evidence; the URL is then quoted when flagging the issue."""
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_receiving_side(ctx, dispatch)
        return save_upload_file(upload, "issue-photos", dispatch.id)

    def mark_picked_up(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: PickupRequest,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        """
        pending -> in-transit. Refused, with nothing written, while no carrier
        con note number is known.
        """
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        try:
            number = lifecycle.check_pickup(
                dispatch.status,
                (data.con_note_number or "").strip() or dispatch.transporter_con_note_number)
        except TransitionError as e:
            logger.warning(
                f"Pickup refused for {dispatch.display_id}: {e.message}")
            raise transition_http_error(e)

        dispatch.transporter_con_note_number = number
        dispatch.status = DispatchStatus.IN_TRANSIT
        dispatch.pickup_time = datetime.utcnow()
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.IN_TRANSIT,
            ctx.user_id, ctx.actor_role, {"con_note_number": number}
        )
        self.commit_events(dispatch, [event], background_tasks)
        logger.info(f"Dispatch {dispatch.display_id} picked up (con note {number})")
        return to_dispatch_read(dispatch)

    def update_eta(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: EtaUpdate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        try:
            lifecycle.check_eta(dispatch.status)
        except TransitionError as e:
            raise transition_http_error(e)

        dispatch.current_eta = data.new_time.strip()
        self.session.add(dispatch)
        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.ETA_UPDATED,
            ctx.user_id, ctx.actor_role, {"new_time": dispatch.current_eta}
        )
        self.commit_events(dispatch, [event], background_tasks)
        return to_dispatch_read(dispatch)

    def mark_arrived(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: ArrivalRequest,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        if ctx.role == UserRole.SUPPLIER and not ctx.is_admin:
            raise HTTPException(403, "Arrival is recorded by the receiver or carrier.")
        try:
            lifecycle.ensure_transition(dispatch.status, DispatchStatus.ARRIVED)
        except TransitionError as e:
            raise transition_http_error(e)

        lot = (data.internal_lot_number or "").strip() or None
        if lot:
            dispatch.internal_lot_number = lot
        dispatch.status = DispatchStatus.ARRIVED
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.ARRIVED,
            ctx.user_id, ctx.actor_role, {"internal_lot_number": lot}
        )
        self.commit_events(dispatch, [event], background_tasks)
        logger.info(f"Dispatch {dispatch.display_id} arrived")
        return to_dispatch_read(dispatch)

    def confirm_received(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: ReceiveRequest,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        """
        arrived -> received, unless any issue has been flagged, in which case
        the dispatch lands in (or stays in) 'issue' instead.
        """
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_receiving_side(ctx, dispatch)
        issue_count = self.count_issues(dispatch.id)
        try:
            lifecycle.check_receive(dispatch.status, issue_count)
        except TransitionError as e:
            raise transition_http_error(e)

        new_status = lifecycle.resolve_receive_status(issue_count)

        lot = (data.internal_lot_number or "").strip() or None
        if lot:
            dispatch.internal_lot_number = lot
        if data.receiving_temperature is not None:
            dispatch.receiving_temperature = data.receiving_temperature
        dispatch.status = new_status
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.RECEIVED,
            ctx.user_id, ctx.actor_role,
            {
                "internal_lot_number": dispatch.internal_lot_number,
                "resolved_status": new_status.value,
                "issue_count": issue_count,
            }
        )
        self.commit_events(dispatch, [event], background_tasks)
        logger.info(
            f"Dispatch {dispatch.display_id} receive confirmed -> {new_status.value}")
        return to_dispatch_read(dispatch)

    def flag_issue(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: IssueCreate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchDetailRead:
        """Records a receiving issue and forces the dispatch into 'issue'."""
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_receiving_side(ctx, dispatch)

        issue = ReceivingIssue(
            dispatch_id=dispatch.id,
            issue_type=data.issue_type,
            severity=data.severity,
            description=data.description.strip(),
            photo_url=data.photo_url,
            item_index=data.item_index,
            flagged_by=ctx.user_id,
        )
        self.session.add(issue)

        previous = dispatch.status
        if previous != DispatchStatus.ISSUE:
            dispatch.status = DispatchStatus.ISSUE
            self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.ISSUE_FLAGGED,
            ctx.user_id, ctx.actor_role,
            {
                "issue_type": data.issue_type.value,
                "severity": data.severity.value,
                "previous_status": previous.value,
            }
        )
        self.commit_events(dispatch, [event], background_tasks)
        logger.info(
            f"Issue flagged on {dispatch.display_id}: {data.issue_type.value}/{data.severity.value}")
        return self.get_dispatch_detail(ctx, dispatch.id)

    def assign_lot_number(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        data: LotNumberUpdate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DispatchRead:
        """
        Books the consignment into inventory. On an arrived dispatch this clears
        the 'received-pending-admin' display state without changing status.
        """
        dispatch = self.get_visible_dispatch(ctx, dispatch_id)
        self._require_receiving_side(ctx, dispatch)
        if dispatch.status == DispatchStatus.PENDING:
            raise HTTPException(409, "Lot numbers are assigned once the dispatch has left the farm.")

        lot = data.internal_lot_number.strip()
        if not lot:
            raise HTTPException(400, "Lot number cannot be blank.")
        if lot == dispatch.internal_lot_number:
            return to_dispatch_read(dispatch)

        previous = dispatch.internal_lot_number
        dispatch.internal_lot_number = lot
        self.session.add(dispatch)

        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.EDITED,
            ctx.user_id, ctx.actor_role,
            {"fields": ["internal_lot_number"], "internal_lot_number": lot,
             "previous_lot_number": previous}
        )
        self.commit_events(dispatch, [event], background_tasks)
        return to_dispatch_read(dispatch)
