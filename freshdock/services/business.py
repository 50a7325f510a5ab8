import math
import uuid
import secrets
from datetime import date
from typing import List, Optional
from fastapi import HTTPException
from loguru import logger
from sqlmodel import Session, select, func, col

from freshdock.core.config import settings
from freshdock.db.schema import (
    Business, BusinessType, Dispatch, DispatchStatus, SupplierIntakeLink
)
from freshdock.models.auth import SessionContext
from freshdock.models.business import (
    BusinessRead, BusinessSummary, BusinessUpdate, IntakeTokenRead,
    GrowerScorecard, InboundDay, InboundPlan
)
from freshdock.services import lifecycle
from freshdock.services.dispatch import to_dispatch_read
from freshdock.utils.growing_week import growing_week

SCORECARD_WINDOW = 50


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BusinessService:
    def __init__(self, session: Session):
        self.session = session

    def _get_business(self, business_id: uuid.UUID) -> Business:
        business = self.session.get(Business, business_id)
        if not business:
            raise HTTPException(status_code=404, detail="Business not found.")
        return business

    def _get_own_business(self, ctx: SessionContext) -> Business:
        if not ctx.business_id:
            raise HTTPException(
                status_code=403, detail="Your account is not linked to a business.")
        return self._get_business(ctx.business_id)

    def _require_manager(self, ctx: SessionContext, business: Business):
        """Owner of the business, or a FreshDock admin."""
        if ctx.is_admin and ctx.business_id == business.id:
            return
        if business.owner_id == ctx.user_id:
            return
        raise HTTPException(
            status_code=403, detail="Only the business owner can change these details.")

    def _require_receiving_staff(self, ctx: SessionContext) -> Business:
        business = self._get_own_business(ctx)
        if not ctx.can_receive or business.business_type != BusinessType.RECEIVER:
            raise HTTPException(status_code=403, detail="Receiver staff only.")
        return business

    # ==========================================================================
    # PROFILE
    # ==========================================================================

    def get_my_business(self, ctx: SessionContext) -> BusinessRead:
        business = self._get_own_business(ctx)
        data = BusinessRead.model_validate(business)
        # The intake token is a credential; only the receiving side sees it
        if not ctx.can_receive:
            data.public_intake_token = None
        return data

    def update_business(self, ctx: SessionContext, data: BusinessUpdate) -> BusinessRead:
        business = self._get_own_business(ctx)
        self._require_manager(ctx, business)

        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(business, key, value.strip() if isinstance(value, str) else value)

        self.session.add(business)
        self.session.commit()
        self.session.refresh(business)
        logger.info(f"Business {business.id} updated: {sorted(update_data)}")
        return BusinessRead.model_validate(business)

    def rotate_intake_token(self, ctx: SessionContext) -> IntakeTokenRead:
        """
        Issues a new public intake token. Old submit links stop working; short
        links created by this business follow the new token.
        """
        business = self._require_receiving_staff(ctx)
        self._require_manager(ctx, business)

        old_token = business.public_intake_token
        business.public_intake_token = secrets.token_urlsafe(24)
        self.session.add(business)

        if old_token:
            links = self.session.exec(
                select(SupplierIntakeLink).where(SupplierIntakeLink.intake_token == old_token)
            ).all()
            for link in links:
                link.intake_token = business.public_intake_token
                self.session.add(link)

        self.session.commit()
        self.session.refresh(business)
        logger.info(f"Intake token rotated for business {business.id}")
        return IntakeTokenRead(
            public_intake_token=business.public_intake_token,
            submit_url=f"{settings.app_url}/submit/{business.public_intake_token}",
        )

    def search_partners(self, ctx: SessionContext, query: str, limit: int = 20) -> List[BusinessSummary]:
        """Suppliers look for receivers and receivers look for suppliers."""
        own = self._get_own_business(ctx)
        target = BusinessType.RECEIVER if own.business_type == BusinessType.SUPPLIER \
            else BusinessType.SUPPLIER

        statement = select(Business).where(Business.business_type == target)
        if query and query.strip():
            statement = statement.where(col(Business.name).ilike(f"%{query.strip()}%"))
        statement = statement.order_by(Business.name).limit(limit)

        return [BusinessSummary.model_validate(b) for b in self.session.exec(statement).all()]

    # ==========================================================================
    # REPORTING
    # ==========================================================================

    def grower_scorecard(self, ctx: SessionContext, grower_name: str) -> GrowerScorecard:
        """
        Performance of one grower over their last 50 dispatches to the caller's
        business.
        """
        business = self._require_receiving_staff(ctx)
        name = (grower_name or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="grower_name is required.")

        dispatches = self.session.exec(
            select(Dispatch)
            .where(Dispatch.receiver_business_id == business.id)
            .where(func.lower(Dispatch.grower_name) == name.lower())
            .order_by(Dispatch.created_at.desc())
            .limit(SCORECARD_WINDOW)
        ).all()

        card = GrowerScorecard(grower_name=name)
        if not dispatches:
            return card

        received_states = {"received", "received-pending-admin"}
        for d in dispatches:
            shown = lifecycle.display_status(d.status, d.internal_lot_number).value
            card.total += 1
            card.pallets += d.total_pallets or 0
            if shown in received_states:
                card.received += 1
            if d.status == DispatchStatus.ISSUE:
                card.issues += 1
            if d.status == DispatchStatus.RECEIVED and d.expected_arrival:
                card.on_time += 1

        if card.received:
            card.on_time_pct = _round_half_up(card.on_time / card.received * 100)
        card.issue_pct = _round_half_up(card.issues / card.total * 100)
        card.avg_pallets = _round_half_up(card.pallets / card.total)
        return card

    def inbound_plan(self, ctx: SessionContext, day: Optional[date] = None) -> InboundPlan:
        """
        Dispatches expected during the growing week containing ``day``,
        grouped by expected arrival date.
        """
        business = self._require_receiving_staff(ctx)
        if not ctx.can_plan:
            raise HTTPException(
                status_code=403, detail="Inbound planning is limited to managers.")

        week = growing_week(day or date.today())
        rows = self.session.exec(
            select(Dispatch)
            .where(Dispatch.receiver_business_id == business.id)
            .where(Dispatch.expected_arrival >= week.start)
            .where(Dispatch.expected_arrival <= week.end)
            .order_by(Dispatch.expected_arrival, Dispatch.estimated_arrival_window_start)
        ).all()

        days = {d: InboundDay(day=d) for d in week.days}
        for dispatch in rows:
            bucket = days[dispatch.expected_arrival]
            bucket.dispatches.append(to_dispatch_read(dispatch))
            bucket.pallets += dispatch.total_pallets or 0

        return InboundPlan(
            label=week.label,
            week=week.number,
            year=week.year,
            start=week.start,
            end=week.end,
            days=list(days.values()),
            total_dispatches=len(rows),
            total_pallets=sum(d.pallets for d in days.values()),
        )
