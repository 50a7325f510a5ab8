import uuid
import secrets
import string
from datetime import datetime
from typing import List, Optional
from fastapi import HTTPException, BackgroundTasks, status
from loguru import logger
from sqlmodel import Session, select, func

from freshdock.core.audit import append_dispatch_event, _perform_event_log
from freshdock.core.config import settings
from freshdock.core.notifications import notify_dispatch_submitted
from freshdock.db.schema import (
    Business, BusinessType, Dispatch, DispatchItem, DispatchEvent,
    DispatchEventType, DispatchStatus, SupplierIntakeLink, User
)
from freshdock.models.auth import SessionContext
from freshdock.models.intake import (
    PublicIntakeSubmit, PublicIntakeResult,
    HistoryItem, HistoryDispatch, HistoryResponse,
    IntakeLinkCreate, IntakeLinkRead, ShortLinkResolved,
    PublicDispatchStatus, PublicTimelineEntry
)
from freshdock.services import lifecycle
from freshdock.services.delivery_advice import DeliveryAdviceService
from freshdock.services.dispatch import DispatchService
from freshdock.utils.qr import dispatch_status_url
from freshdock.utils.weights import line_total_weight

EXTERNAL_SUPPLIER_ROLE = "external_supplier"
SHORT_CODE_ALPHABET = string.ascii_lowercase + string.digits
SHORT_CODE_LENGTH = 8


def generate_short_code() -> str:
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(SHORT_CODE_LENGTH))


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class IntakeService:
    def __init__(self, session: Session):
        self.session = session

    def _receiver_by_token(self, intake_token: str, detail: str) -> Business:
        receiver = self.session.exec(
            select(Business)
            .where(Business.public_intake_token == intake_token)
            .where(Business.business_type == BusinessType.RECEIVER)
        ).first()
        if not receiver:
            logger.warning("Public intake attempted with an unknown token")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        return receiver

    def _receiver_email(self, receiver: Business) -> Optional[str]:
        if receiver.email:
            return receiver.email
        if receiver.owner_id:
            owner = self.session.get(User, receiver.owner_id)
            return owner.email if owner else None
        return None

    # ==========================================================================
    # PUBLIC SUBMISSION
    # ==========================================================================

    def submit(
        self,
        data: PublicIntakeSubmit,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> PublicIntakeResult:
        """
        Creates a pending dispatch for an unauthenticated grower. An unknown
        token creates nothing.
        """
        receiver = self._receiver_by_token(
            data.intake_token, "Invalid intake link. Please check the URL.")

        grower_name = data.grower_name.strip()
        try:
            lifecycle.validate_new_dispatch(data.items, grower_name)
        except lifecycle.TransitionError as e:
            raise HTTPException(status_code=400, detail=e.message)

        dispatches = DispatchService(self.session)
        dispatch = Dispatch(
            display_id=dispatches.unique_display_id(),
            qr_code_token=secrets.token_urlsafe(16),
            supplier_id=None,
            receiver_business_id=receiver.id,
            grower_name=grower_name,
            grower_code=_clean(data.grower_code),
            dispatch_date=data.dispatch_date,
            expected_arrival=data.expected_arrival,
            carrier=_clean(data.carrier),
            notes=_clean(data.notes),
            total_pallets=data.total_pallets,
            transporter_con_note_number="",
            status=DispatchStatus.PENDING,
        )
        self.session.add(dispatch)
        self.session.flush()

        for position, item in enumerate(data.items):
            self.session.add(DispatchItem(
                dispatch_id=dispatch.id,
                position=position,
                product=item.product.strip(),
                variety=_clean(item.variety),
                size=_clean(item.size),
                tray_type=_clean(item.tray_type),
                quantity=item.quantity,
                unit_weight=item.unit_weight or None,
                weight=line_total_weight(item.quantity, item.unit_weight, None),
            ))

        number = DeliveryAdviceService(self.session).assign_number(dispatch)

        contact = {
            "source": "public_intake",
            "grower_name": grower_name,
            "grower_email": _clean(data.grower_email),
            "grower_phone": _clean(data.grower_phone),
        }
        events = [
            append_dispatch_event(
                self.session, dispatch.id, DispatchEventType.CREATED,
                None, EXTERNAL_SUPPLIER_ROLE, contact
            ),
            append_dispatch_event(
                self.session, dispatch.id, DispatchEventType.SUBMITTED,
                None, EXTERNAL_SUPPLIER_ROLE, {"delivery_advice_number": number}
            ),
        ]
        dispatches.commit_events(dispatch, events, background_tasks)

        logger.info(
            f"Public intake: {dispatch.display_id} ({number}) from {grower_name} to {receiver.name}")

        if background_tasks is not None:
            background_tasks.add_task(
                notify_dispatch_submitted,
                self._receiver_email(receiver),
                contact["grower_email"],
                receiver.name,
                grower_name,
                dispatch.display_id,
                number,
                dispatch_status_url(dispatch.qr_code_token),
            )

        return PublicIntakeResult(
            success=True,
            dispatch_id=dispatch.display_id,
            delivery_advice_number=number,
            message=f"Dispatch {dispatch.display_id} submitted successfully to {receiver.name}",
        )

    def history(self, intake_token: str, grower_name: str) -> HistoryResponse:
        """Recent dispatches from one grower to the receiver behind the token."""
        name = (grower_name or "").strip()
        if not intake_token or not name:
            raise HTTPException(400, "Missing intake_token or grower_name")

        receiver = self._receiver_by_token(intake_token, "Invalid intake token")

        rows = self.session.exec(
            select(Dispatch)
            .where(Dispatch.receiver_business_id == receiver.id)
            .where(func.lower(Dispatch.grower_name) == name.lower())
            .order_by(Dispatch.dispatch_date.desc(), Dispatch.created_at.desc())
            .limit(settings.history_limit)
        ).all()

        return HistoryResponse(dispatches=[
            HistoryDispatch(
                display_id=d.display_id,
                delivery_advice_number=d.delivery_advice_number,
                dispatch_date=d.dispatch_date,
                status=d.status,
                display_status=lifecycle.display_status(d.status, d.internal_lot_number),
                total_pallets=d.total_pallets,
                carrier=d.carrier,
                transporter_con_note_number=d.transporter_con_note_number or "",
                created_at=d.created_at,
                items=self._summary_items(d.id),
            )
            for d in rows
        ])

    def _summary_items(self, dispatch_id: uuid.UUID) -> List[HistoryItem]:
        items = self.session.exec(
            select(DispatchItem)
            .where(DispatchItem.dispatch_id == dispatch_id)
            .order_by(DispatchItem.position)
        ).all()
        return [HistoryItem(product=i.product, variety=i.variety, quantity=i.quantity) for i in items]

    # ==========================================================================
    # INTAKE LINKS
    # ==========================================================================

    def _own_receiver(self, ctx: SessionContext) -> Business:
        if not ctx.can_receive or not ctx.business_id:
            raise HTTPException(403, "Only receiving staff can manage intake links.")
        business = self.session.get(Business, ctx.business_id)
        if not business or business.business_type != BusinessType.RECEIVER:
            raise HTTPException(403, "Only receiving staff can manage intake links.")
        if not business.public_intake_token:
            raise HTTPException(400, "This business has no public intake link yet.")
        return business

    def _link_read(self, link: SupplierIntakeLink) -> IntakeLinkRead:
        return IntakeLinkRead.model_validate(link, update={
            "url": f"{settings.app_url}/s/{link.short_code}"
        })

    def create_link(self, ctx: SessionContext, data: IntakeLinkCreate) -> IntakeLinkRead:
        business = self._own_receiver(ctx)

        code = generate_short_code()
        while self.session.exec(
            select(SupplierIntakeLink.id).where(SupplierIntakeLink.short_code == code)
        ).first():
            code = generate_short_code()

        link = SupplierIntakeLink(
            short_code=code,
            intake_token=business.public_intake_token,
            grower_name=data.grower_name.strip(),
            grower_code=_clean(data.grower_code),
            grower_email=_clean(data.grower_email),
            grower_phone=_clean(data.grower_phone),
            created_by=ctx.user_id,
        )
        self.session.add(link)
        try:
            self.session.commit()
            self.session.refresh(link)
        except Exception:
            self.session.rollback()
            logger.exception("Creating intake link failed")
            raise HTTPException(500, "Could not create the link. Please try again.")

        logger.info(f"Intake link {code} created for {link.grower_name} by {ctx.user_id}")
        return self._link_read(link)

    def list_links(self, ctx: SessionContext) -> List[IntakeLinkRead]:
        business = self._own_receiver(ctx)
        links = self.session.exec(
            select(SupplierIntakeLink)
            .where(SupplierIntakeLink.intake_token == business.public_intake_token)
            .order_by(SupplierIntakeLink.created_at.desc())
        ).all()
        return [self._link_read(link) for link in links]

    def delete_link(self, ctx: SessionContext, link_id: uuid.UUID):
        business = self._own_receiver(ctx)
        link = self.session.get(SupplierIntakeLink, link_id)
        if not link or link.intake_token != business.public_intake_token:
            raise HTTPException(404, "Link not found.")

        self.session.delete(link)
        self.session.commit()
        logger.info(f"Intake link {link.short_code} deleted by {ctx.user_id}")

    def resolve_short_link(self, short_code: str) -> ShortLinkResolved:
        link = self.session.exec(
            select(SupplierIntakeLink).where(SupplierIntakeLink.short_code == short_code)
        ).first()
        if not link:
            raise HTTPException(404, "This link is not valid")

        receiver = self.session.exec(
            select(Business).where(Business.public_intake_token == link.intake_token)
        ).first()

        return ShortLinkResolved(
            intake_token=link.intake_token,
            receiver_name=receiver.name if receiver else None,
            grower_name=link.grower_name,
            grower_code=link.grower_code,
            grower_email=link.grower_email,
            grower_phone=link.grower_phone,
            submit_url=f"{settings.app_url}/submit/{link.intake_token}",
        )

    # ==========================================================================
    # PUBLIC STATUS PAGE
    # ==========================================================================

    def public_status(
        self,
        qr_code_token: str,
        ctx: Optional[SessionContext] = None,
        user_agent: Optional[str] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> PublicDispatchStatus:
        """
        What a scanned delivery advice shows. The scan itself is logged as a
        best-effort 'qr_scanned' event after the response.
        """
        dispatch = self.session.exec(
            select(Dispatch).where(Dispatch.qr_code_token == qr_code_token)
        ).first()
        if not dispatch:
            raise HTTPException(404, "Dispatch not found.")

        receiver = None
        if dispatch.receiver_business_id:
            receiver = self.session.get(Business, dispatch.receiver_business_id)

        events = self.session.exec(
            select(DispatchEvent)
            .where(DispatchEvent.dispatch_id == dispatch.id)
            .where(DispatchEvent.event_type != DispatchEventType.QR_SCANNED)
            .order_by(DispatchEvent.sequence)
        ).all()

        if background_tasks is not None:
            background_tasks.add_task(
                _perform_event_log,
                dispatch.id,
                DispatchEventType.QR_SCANNED,
                ctx.user_id if ctx else None,
                ctx.actor_role if ctx else "anonymous",
                {
                    "user_agent": user_agent,
                    "timestamp": datetime.utcnow().isoformat(),
                    "authenticated": ctx is not None,
                },
            )

        return PublicDispatchStatus(
            display_id=dispatch.display_id,
            delivery_advice_number=dispatch.delivery_advice_number,
            status=dispatch.status,
            display_status=lifecycle.display_status(dispatch.status, dispatch.internal_lot_number),
            grower_name=dispatch.grower_name,
            receiver_name=receiver.name if receiver else None,
            carrier=dispatch.carrier,
            transporter_con_note_number=dispatch.transporter_con_note_number or "",
            dispatch_date=dispatch.dispatch_date,
            expected_arrival=dispatch.expected_arrival,
            estimated_arrival_window_start=dispatch.estimated_arrival_window_start,
            estimated_arrival_window_end=dispatch.estimated_arrival_window_end,
            current_eta=dispatch.current_eta,
            pickup_time=dispatch.pickup_time,
            total_pallets=dispatch.total_pallets,
            items=self._summary_items(dispatch.id),
            timeline=[
                PublicTimelineEntry(event_type=e.event_type, created_at=e.created_at)
                for e in events
            ],
        )
