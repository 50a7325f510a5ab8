from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query

from freshdock.core.dependencies import get_session_context, get_business_service
from freshdock.models.auth import SessionContext
from freshdock.models.business import (
    BusinessRead, BusinessSummary, BusinessUpdate, IntakeTokenRead,
    GrowerScorecard, InboundPlan
)
from freshdock.services.business import BusinessService

router = APIRouter()


@router.get(
    "/me",
    response_model=BusinessRead,
    status_code=status.HTTP_200_OK,
    summary="Get my business"
)
def get_my_business(
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.get_my_business(ctx)


@router.patch(
    "/me",
    response_model=BusinessRead,
    status_code=status.HTTP_200_OK,
    summary="Update my business",
    description="Owner only. Address and contact details appear on delivery advice documents."
)
def update_my_business(
    data: BusinessUpdate,
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.update_business(ctx, data)


@router.post(
    "/me/intake-token",
    response_model=IntakeTokenRead,
    status_code=status.HTTP_200_OK,
    summary="Rotate intake token",
    description="Invalidates the current public intake link and issues a new one."
)
def rotate_intake_token(
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.rotate_intake_token(ctx)


@router.get(
    "/directory",
    response_model=List[BusinessSummary],
    status_code=status.HTTP_200_OK,
    summary="Search partners",
    description="Growers find receivers; receivers find growers."
)
def search_partners(
    q: str = Query("", max_length=100, description="Part of the business name"),
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.search_partners(ctx, q)


@router.get(
    "/me/growers/scorecard",
    response_model=GrowerScorecard,
    status_code=status.HTTP_200_OK,
    summary="Grower scorecard",
    description="Totals and rates over the grower's last 50 dispatches to this business."
)
def grower_scorecard(
    grower_name: str = Query(..., min_length=1, max_length=200),
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.grower_scorecard(ctx, grower_name)


@router.get(
    "/me/inbound",
    response_model=InboundPlan,
    status_code=status.HTTP_200_OK,
    summary="Inbound planning",
    description="Expected arrivals for the growing week (Thursday to Wednesday) containing the given day."
)
def inbound_plan(
    day: Optional[date] = Query(None, description="Any day in the week; defaults to today"),
    ctx: SessionContext = Depends(get_session_context),
    service: BusinessService = Depends(get_business_service)
):
    return service.inbound_plan(ctx, day)
