from typing import Any, Dict, List, Literal, Optional, Union
from datetime import date, datetime
from uuid import UUID
from pydantic import Field as PydanticField, field_validator
from sqlmodel import SQLModel, Field
from typing_extensions import Annotated

from freshdock.db.schema import (
    DispatchStatus, DisplayStatus, DispatchEventType,
    TemperatureZone, IssueType, IssueSeverity
)


# ==============================================================================
# GROWER IDENTITY
# ==============================================================================

class LinkedBusinessGrower(SQLModel):
    """The grower has a FreshDock account: reference their business."""
    kind: Literal["business"] = "business"
    business_id: UUID


class FreeTextGrower(SQLModel):
    """The grower has no account: carry their name and code as text."""
    kind: Literal["free_text"] = "free_text"
    name: str = Field(min_length=1, max_length=200)
    code: Optional[str] = Field(default=None, max_length=50)


GrowerRef = Annotated[
    Union[LinkedBusinessGrower, FreeTextGrower],
    PydanticField(discriminator="kind")
]


# ==============================================================================
# WRITE MODELS
# ==============================================================================

class DispatchItemCreate(SQLModel):
    product: str = Field(min_length=1, max_length=200, schema_extra={"examples": ["Bananas"]})
    variety: Optional[str] = Field(default=None, max_length=200)
    size: Optional[str] = Field(default=None, max_length=100)
    tray_type: Optional[str] = Field(default=None, max_length=100)
    quantity: int = Field(ge=1, schema_extra={"examples": [60]})
    unit_weight: Optional[float] = Field(
        default=None,
        ge=0,
        description="Kilograms per unit."
    )


class DispatchCreate(SQLModel):
    """
    Payload for an authenticated grower submitting a dispatch.
    """
    grower: GrowerRef
    receiver_business_id: Optional[UUID] = None

    dispatch_date: date
    expected_arrival: Optional[date] = None
    estimated_arrival_window_start: Optional[str] = Field(default=None, max_length=20)
    estimated_arrival_window_end: Optional[str] = Field(default=None, max_length=20)

    carrier: Optional[str] = Field(default=None, max_length=200)
    truck_number: Optional[str] = Field(default=None, max_length=50)
    con_note_number: Optional[str] = Field(
        default=None,
        max_length=100,
        description="The carrier's consignment note number, if already known."
    )

    temperature_zone: Optional[TemperatureZone] = None
    commodity_class: Optional[str] = Field(default=None, max_length=100)
    total_pallets: int = Field(default=0, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)
    photos: List[str] = Field(default_factory=list)

    items: List[DispatchItemCreate] = Field(default_factory=list)


class DispatchUpdate(SQLModel):
    """Header fields a grower may amend while the dispatch is pending. Items are fixed."""
    dispatch_date: Optional[date] = None
    expected_arrival: Optional[date] = None
    estimated_arrival_window_start: Optional[str] = Field(default=None, max_length=20)
    estimated_arrival_window_end: Optional[str] = Field(default=None, max_length=20)
    carrier: Optional[str] = Field(default=None, max_length=200)
    truck_number: Optional[str] = Field(default=None, max_length=50)
    temperature_zone: Optional[TemperatureZone] = None
    commodity_class: Optional[str] = Field(default=None, max_length=100)
    total_pallets: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("dispatch_date", "total_pallets")
    @classmethod
    def not_cleared(cls, value):
        # Omit the field to leave it unchanged; these columns cannot be blank
        if value is None:
            raise ValueError("This field cannot be cleared.")
        return value


class ConNoteAttach(SQLModel):
    con_note_number: str = Field(min_length=1, max_length=100)
    transporter_notes: Optional[str] = Field(default=None, max_length=2000)


class PickupRequest(SQLModel):
    con_note_number: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Optional; falls back to the number already on the dispatch."
    )


class EtaUpdate(SQLModel):
    new_time: str = Field(min_length=1, max_length=50, schema_extra={"examples": ["14:30"]})


class ArrivalRequest(SQLModel):
    internal_lot_number: Optional[str] = Field(default=None, max_length=100)


class ReceiveRequest(SQLModel):
    internal_lot_number: Optional[str] = Field(default=None, max_length=100)
    receiving_temperature: Optional[float] = None


class IssueCreate(SQLModel):
    issue_type: IssueType
    severity: IssueSeverity = IssueSeverity.MEDIUM
    description: str = Field(min_length=1, max_length=2000)
    photo_url: Optional[str] = Field(default=None, max_length=1000)
    item_index: Optional[int] = Field(default=None, ge=0)


class LotNumberUpdate(SQLModel):
    internal_lot_number: str = Field(min_length=1, max_length=100)


# ==============================================================================
# READ MODELS
# ==============================================================================

class DispatchItemRead(SQLModel):
    id: UUID
    position: int
    product: str
    variety: Optional[str] = None
    size: Optional[str] = None
    tray_type: Optional[str] = None
    quantity: int
    unit_weight: Optional[float] = None
    weight: Optional[float] = None
    total_weight: Optional[float] = Field(
        default=None,
        description="quantity x unit_weight, else stored weight, else null (unspecified)."
    )


class ReceivingIssueRead(SQLModel):
    id: UUID
    issue_type: IssueType
    severity: IssueSeverity
    description: str
    photo_url: Optional[str] = None
    item_index: Optional[int] = None
    flagged_by: Optional[UUID] = None
    created_at: datetime


class DispatchEventRead(SQLModel):
    id: UUID
    dispatch_id: UUID
    sequence: int
    event_type: DispatchEventType
    triggered_by_user_id: Optional[UUID] = None
    triggered_by_role: str
    details: Dict[str, Any] = {}
    created_at: datetime


class DispatchRead(SQLModel):
    id: UUID
    display_id: str
    delivery_advice_number: Optional[str] = None
    qr_code_token: str
    status: DispatchStatus
    display_status: DisplayStatus

    grower: GrowerRef
    grower_name: str
    grower_code: Optional[str] = None
    supplier_business_id: Optional[UUID] = None
    receiver_business_id: Optional[UUID] = None

    dispatch_date: date
    expected_arrival: Optional[date] = None
    estimated_arrival_window_start: Optional[str] = None
    estimated_arrival_window_end: Optional[str] = None
    current_eta: Optional[str] = None
    pickup_time: Optional[datetime] = None

    carrier: Optional[str] = None
    truck_number: Optional[str] = None
    transporter_con_note_number: str = ""
    transporter_con_note_photo_url: Optional[str] = None

    temperature_zone: Optional[TemperatureZone] = None
    commodity_class: Optional[str] = None
    total_pallets: int
    notes: Optional[str] = None
    photos: List[str] = []
    internal_lot_number: Optional[str] = None
    receiving_temperature: Optional[float] = None

    created_at: datetime
    updated_at: datetime


class DispatchDetailRead(DispatchRead):
    """Full view: the dispatch plus its lines, issues and timeline."""
    items: List[DispatchItemRead] = []
    issues: List[ReceivingIssueRead] = []
    events: List[DispatchEventRead] = []
