from typing import List, Optional
from datetime import date
from uuid import UUID
from sqlmodel import SQLModel, Field

from freshdock.db.schema import BusinessType
from freshdock.models.dispatch import DispatchRead


class BusinessRead(SQLModel):
    id: UUID
    name: str
    business_type: BusinessType
    owner_id: Optional[UUID] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    abn: Optional[str] = None
    grower_code: Optional[str] = None
    public_intake_token: Optional[str] = None


class BusinessSummary(SQLModel):
    """What other tenants may see when searching for a partner."""
    id: UUID
    name: str
    business_type: BusinessType
    city: Optional[str] = None
    state: Optional[str] = None


class BusinessUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    address: Optional[str] = Field(default=None, max_length=300)
    city: Optional[str] = Field(default=None, max_length=100)
    region: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=10)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=254)
    abn: Optional[str] = Field(default=None, max_length=20)
    grower_code: Optional[str] = Field(default=None, max_length=50)


class IntakeTokenRead(SQLModel):
    public_intake_token: str
    submit_url: str


# ==============================================================================
# GROWER SCORECARD
# ==============================================================================

class GrowerScorecard(SQLModel):
    grower_name: str
    total: int = 0
    received: int = Field(default=0, description="Received, including arrived-awaiting-lot-number.")
    issues: int = 0
    on_time: int = 0
    pallets: int = 0
    on_time_pct: int = Field(default=0, description="Whole percent of received dispatches on time.")
    issue_pct: int = Field(default=0, description="Whole percent of all dispatches with an issue.")
    avg_pallets: int = Field(default=0, description="Average pallets per dispatch, rounded.")


# ==============================================================================
# INBOUND PLANNING
# ==============================================================================

class InboundDay(SQLModel):
    day: date
    dispatches: List[DispatchRead] = []
    pallets: int = 0


class InboundPlan(SQLModel):
    label: str = Field(schema_extra={"examples": ["GW42 · 2026"]})
    week: int
    year: int
    start: date
    end: date
    days: List[InboundDay] = []
    total_dispatches: int = 0
    total_pallets: int = 0
