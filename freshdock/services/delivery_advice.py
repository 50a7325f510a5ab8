import uuid
from datetime import datetime
from typing import Optional, Tuple
from fastapi import HTTPException, BackgroundTasks, status
from loguru import logger
from sqlmodel import Session, select

from freshdock.core.audit import append_dispatch_event
from freshdock.core.config import settings
from freshdock.db.schema import (
    Business, Dispatch, DispatchItem, DispatchEventType, DeliveryAdviceSequence
)
from freshdock.models.auth import SessionContext
from freshdock.models.delivery_advice import (
    AdviceLine, DeliveryAdviceSnapshot, DeliveryAdviceNumberRead, PartyBlock
)
from freshdock.services.dispatch import DispatchService
from freshdock.utils.pdf import render_delivery_advice
from freshdock.utils.qr import dispatch_status_url


def format_delivery_advice_number(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:05d}"


class DeliveryAdviceService:
    def __init__(self, session: Session):
        self.session = session
        self.dispatches = DispatchService(session)

    # ==========================================================================
    # NUMBERING
    # ==========================================================================

    def assign_number(self, dispatch: Dispatch) -> str:
        """
        Get-or-create the dispatch's delivery advice number inside the current
        transaction. Once assigned it never changes.
        """
        if dispatch.delivery_advice_number:
            return dispatch.delivery_advice_number

        now = datetime.utcnow()
        counter = self.session.get(DeliveryAdviceSequence, now.year, with_for_update=True)
        if not counter:
            counter = DeliveryAdviceSequence(year=now.year, last_value=0)
        counter.last_value += 1
        self.session.add(counter)

        dispatch.delivery_advice_number = format_delivery_advice_number(
            settings.delivery_advice_prefix, now.year, counter.last_value)
        dispatch.delivery_advice_generated_at = now
        self.session.add(dispatch)
        self.session.flush()

        logger.info(
            f"Delivery advice {dispatch.delivery_advice_number} assigned to {dispatch.display_id}")
        return dispatch.delivery_advice_number

    def assign_delivery_advice_number(
        self, ctx: SessionContext, dispatch_id: uuid.UUID
    ) -> DeliveryAdviceNumberRead:
        dispatch = self.dispatches.get_visible_dispatch(ctx, dispatch_id)
        existing = dispatch.delivery_advice_number
        number = self.assign_number(dispatch)
        if not existing:
            self._commit_number(dispatch)

        return DeliveryAdviceNumberRead(
            dispatch_id=dispatch.id,
            delivery_advice_number=number,
            delivery_advice_generated_at=dispatch.delivery_advice_generated_at,
        )

    def _commit_number(self, dispatch: Dispatch):
        try:
            self.session.commit()
            self.session.refresh(dispatch)
        except Exception:
            self.session.rollback()
            logger.exception(f"Could not assign a delivery advice number to {dispatch.id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not assign a delivery advice number. Please try again."
            )

    # ==========================================================================
    # DOCUMENT
    # ==========================================================================

    def build_snapshot(self, dispatch: Dispatch) -> DeliveryAdviceSnapshot:
        """Loads parties and items; raises before anything is drawn."""
        grower_business: Optional[Business] = None
        if dispatch.supplier_business_id:
            grower_business = self.session.get(Business, dispatch.supplier_business_id)

        grower = PartyBlock(
            name=dispatch.grower_name,
            code=dispatch.grower_code,
            address=grower_business.address if grower_business else None,
            city=grower_business.city if grower_business else None,
            phone=grower_business.phone if grower_business else None,
            email=grower_business.email if grower_business else None,
        )

        receiver = None
        if dispatch.receiver_business_id:
            business = self.session.get(Business, dispatch.receiver_business_id)
            if business:
                receiver = PartyBlock(
                    name=business.name,
                    address=business.address,
                    city=business.city,
                    phone=business.phone,
                    email=business.email,
                )

        items = self.session.exec(
            select(DispatchItem)
            .where(DispatchItem.dispatch_id == dispatch.id)
            .order_by(DispatchItem.position)
        ).all()

        return DeliveryAdviceSnapshot(
            dispatch_id=dispatch.id,
            number=dispatch.delivery_advice_number,
            status_url=dispatch_status_url(dispatch.qr_code_token),
            grower=grower,
            receiver=receiver,
            carrier=dispatch.carrier,
            truck_number=dispatch.truck_number,
            con_note_number=dispatch.transporter_con_note_number,
            dispatch_date=dispatch.dispatch_date,
            expected_arrival=dispatch.expected_arrival,
            window_start=dispatch.estimated_arrival_window_start,
            window_end=dispatch.estimated_arrival_window_end,
            temperature_zone=dispatch.temperature_zone.value if dispatch.temperature_zone else None,
            commodity_class=dispatch.commodity_class,
            total_pallets=dispatch.total_pallets,
            items=[
                AdviceLine(
                    product=i.product,
                    variety=i.variety,
                    size=i.size,
                    tray_type=i.tray_type,
                    quantity=i.quantity,
                    unit_weight=i.unit_weight,
                    weight=i.weight,
                ) for i in items
            ],
        )

    def generate(
        self,
        ctx: SessionContext,
        dispatch_id: uuid.UUID,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Tuple[str, bytes]:
        """
        Assigns (or reuses) the number, renders the document and logs
        'delivery_advice_generated'. Returns the number and the PDF bytes.
        """
        dispatch = self.dispatches.get_visible_dispatch(ctx, dispatch_id)

        # 1. The number is committed on its own so a failed render never burns it twice
        if not dispatch.delivery_advice_number:
            self.assign_number(dispatch)
            self._commit_number(dispatch)
        number = dispatch.delivery_advice_number

        # 2. Load then draw
        try:
            snapshot = self.build_snapshot(dispatch)
            pdf_bytes = render_delivery_advice(snapshot)
        except Exception:
            logger.exception(f"Rendering delivery advice {number} failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not generate the delivery advice. Please try again."
            )

        # 3. Timeline
        event = append_dispatch_event(
            self.session, dispatch.id, DispatchEventType.DELIVERY_ADVICE_GENERATED,
            ctx.user_id, ctx.actor_role, {"da_number": number}
        )
        self.dispatches.commit_events(dispatch, [event], background_tasks)

        logger.info(f"Delivery advice {number} generated for {dispatch.display_id}")
        return number, pdf_bytes
