from typing import List, Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import EmailStr, StringConstraints, field_validator
from sqlmodel import SQLModel, Field
from typing_extensions import Annotated

from freshdock.db.schema import DispatchStatus, DisplayStatus, DispatchEventType


# ==============================================================================
# PUBLIC SUBMISSION
# ==============================================================================

class PublicIntakeItem(SQLModel):
    product: str = Field(min_length=1, max_length=200)
    variety: Optional[str] = Field(default=None, max_length=200)
    size: Optional[str] = Field(default=None, max_length=100)
    tray_type: Optional[str] = Field(default=None, max_length=100)
    quantity: int = Field(ge=1)
    unit_weight: Optional[float] = Field(default=None, ge=0)


class PublicIntakeSubmit(SQLModel):
    """
    A grower without an account submitting through a receiver's intake link.
    The token identifies the receiving business.
    """
    intake_token: str = Field(min_length=1, max_length=100)
    grower_name: str = Field(min_length=1, max_length=200, schema_extra={"examples": ["Sunny Ridge Farms"]})
    grower_code: Optional[str] = Field(default=None, max_length=50)
    grower_email: Optional[Annotated[EmailStr, StringConstraints(to_lower=True)]] = Field(
        default=None,
        description="Where the grower wants submission confirmations sent."
    )
    grower_phone: Optional[str] = Field(default=None, max_length=50)

    dispatch_date: date
    expected_arrival: Optional[date] = None
    carrier: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=2000)
    total_pallets: int = Field(default=1, ge=1)

    items: List[PublicIntakeItem] = Field(min_length=1)

    @field_validator("grower_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        # The form posts an empty string when the field is left blank
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PublicIntakeResult(SQLModel):
    success: bool = True
    dispatch_id: str = Field(description="The display id, e.g. 'FD-7K2Q9M'.")
    delivery_advice_number: Optional[str] = None
    message: str


# ==============================================================================
# HISTORY
# ==============================================================================

class HistoryItem(SQLModel):
    product: str
    variety: Optional[str] = None
    quantity: int


class HistoryDispatch(SQLModel):
    display_id: str
    delivery_advice_number: Optional[str] = None
    dispatch_date: date
    status: DispatchStatus
    display_status: DisplayStatus
    total_pallets: int
    carrier: Optional[str] = None
    transporter_con_note_number: str = ""
    created_at: datetime
    items: List[HistoryItem] = []


class HistoryResponse(SQLModel):
    dispatches: List[HistoryDispatch] = []


# ==============================================================================
# INTAKE LINKS
# ==============================================================================

class IntakeLinkCreate(SQLModel):
    grower_name: str = Field(min_length=1, max_length=200)
    grower_code: Optional[str] = Field(default=None, max_length=50)
    grower_email: Optional[Annotated[EmailStr, StringConstraints(to_lower=True)]] = Field(
        default=None,
        description="Pre-filled on the grower submission form."
    )
    grower_phone: Optional[str] = Field(default=None, max_length=50)

    @field_validator("grower_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class IntakeLinkRead(SQLModel):
    id: UUID
    short_code: str
    grower_name: str
    grower_code: Optional[str] = None
    grower_email: Optional[str] = None
    grower_phone: Optional[str] = None
    created_at: datetime
    url: str = Field(description="Short link to hand to the grower.")


class ShortLinkResolved(SQLModel):
    """Pre-fill data for the public submission form."""
    intake_token: str
    receiver_name: Optional[str] = None
    grower_name: str
    grower_code: Optional[str] = None
    grower_email: Optional[str] = None
    grower_phone: Optional[str] = None
    submit_url: str


# ==============================================================================
# PUBLIC STATUS PAGE
# ==============================================================================

class PublicTimelineEntry(SQLModel):
    event_type: DispatchEventType
    created_at: datetime


class PublicDispatchStatus(SQLModel):
    display_id: str
    delivery_advice_number: Optional[str] = None
    status: DispatchStatus
    display_status: DisplayStatus
    grower_name: str
    receiver_name: Optional[str] = None
    carrier: Optional[str] = None
    transporter_con_note_number: str = ""
    dispatch_date: date
    expected_arrival: Optional[date] = None
    estimated_arrival_window_start: Optional[str] = None
    estimated_arrival_window_end: Optional[str] = None
    current_eta: Optional[str] = None
    pickup_time: Optional[datetime] = None
    total_pallets: int
    items: List[HistoryItem] = []
    timeline: List[PublicTimelineEntry] = []
