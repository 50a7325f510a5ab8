from typing import List, Optional
from datetime import date, datetime
from uuid import UUID
from sqlmodel import SQLModel, Field


class PartyBlock(SQLModel):
    """One of the FROM / TO columns printed on the document."""
    name: str
    code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class AdviceLine(SQLModel):
    product: Optional[str] = None
    variety: Optional[str] = None
    size: Optional[str] = None
    tray_type: Optional[str] = None
    quantity: int = 0
    unit_weight: Optional[float] = None
    weight: Optional[float] = None


class DeliveryAdviceSnapshot(SQLModel):
    """
    Everything the renderer needs, loaded up front. Rendering never queries
    the database, so a failed load aborts before anything is drawn.
    """
    dispatch_id: UUID
    number: str
    status_url: str
    generated_at: datetime = Field(default_factory=datetime.now)

    grower: PartyBlock
    receiver: Optional[PartyBlock] = None

    carrier: Optional[str] = None
    truck_number: Optional[str] = None
    con_note_number: Optional[str] = None

    dispatch_date: Optional[date] = None
    expected_arrival: Optional[date] = None
    window_start: Optional[str] = None
    window_end: Optional[str] = None
    temperature_zone: Optional[str] = None
    commodity_class: Optional[str] = None
    total_pallets: int = 0

    items: List[AdviceLine] = Field(default_factory=list)


class DeliveryAdviceNumberRead(SQLModel):
    dispatch_id: UUID
    delivery_advice_number: str
    delivery_advice_generated_at: Optional[datetime] = None
