from typing import Optional, List, Dict, Any
from datetime import datetime, date
import uuid
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship, JSON
from enum import Enum


class BusinessType(str, Enum):
    RECEIVER = "receiver"        # e.g., packhouse / wholesaler taking deliveries
    SUPPLIER = "supplier"        # e.g., grower sending produce
    TRANSPORTER = "transporter"  # legacy: carriers no longer sign up


class UserRole(str, Enum):
    STAFF = "staff"
    SUPPLIER = "supplier"
    TRANSPORTER = "transporter"


class StaffPosition(str, Enum):
    ADMIN = "admin"
    WAREHOUSE_MANAGER = "warehouse_manager"
    OPERATIONS = "operations"
    FORKLIFT_DRIVER = "forklift_driver"
    DOCK_HAND = "dock_hand"


class DispatchStatus(str, Enum):
    PENDING = "pending"          # Submitted, awaiting transport
    IN_TRANSIT = "in-transit"    # Picked up by the carrier
    ARRIVED = "arrived"          # Delivered, awaiting confirmation
    RECEIVED = "received"        # Confirmed by the receiver
    ISSUE = "issue"              # A problem was flagged; terminal


class DisplayStatus(str, Enum):
    """Read-side status. Adds the derived state that is never stored."""
    PENDING = "pending"
    IN_TRANSIT = "in-transit"
    ARRIVED = "arrived"
    RECEIVED_PENDING_ADMIN = "received-pending-admin"
    RECEIVED = "received"
    ISSUE = "issue"


class DispatchEventType(str, Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    DELIVERY_ADVICE_GENERATED = "delivery_advice_generated"
    CON_NOTE_ATTACHED = "con_note_attached"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    RECEIVED = "received"
    ISSUE_FLAGGED = "issue_flagged"
    QR_SCANNED = "qr_scanned"
    ETA_UPDATED = "eta_updated"
    EDITED = "edited"


class TemperatureZone(str, Enum):
    AMBIENT = "ambient"
    CHILLED = "chilled"
    FROZEN = "frozen"


class IssueType(str, Enum):
    DAMAGE = "damage"
    MISSING_PAPERWORK = "missing-paperwork"
    QUANTITY_SHORT = "quantity-short"
    QUALITY = "quality"
    TEMPERATURE = "temperature"
    OTHER = "other"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConnectionStatus(str, Enum):
    PENDING = "pending"    # Supplier asked, receiver has not answered
    APPROVED = "approved"  # Supplier may address this receiver
    REJECTED = "rejected"


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps. Every entity inheriting from this mixin tracks
    when it was first persisted and when it was last modified.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="The exact UTC timestamp when this record was first persisted. Example: '2026-10-19 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="The exact UTC timestamp when this record was last modified. Updates automatically."
    )


class Business(TimestampMixin, SQLModel, table=True):
    """
    Represents a tenant: a receiving business (packhouse, wholesaler) or a
    supplying grower. All dispatches, connections, templates and intake links
    hang off a Business. Businesses are never hard-deleted.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="The unique identifier for the business."
    )
    name: str = Field(
        index=True,
        description="Trading name. Example: 'Sunny Ridge Farms'"
    )
    business_type: BusinessType = Field(
        description="Receiver or supplier. Example: 'receiver'"
    )
    owner_id: Optional[uuid.UUID] = Field(
        default=None,
        index=True,
        description="The user who owns and administers this business."
    )

    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    region: Optional[str] = Field(default=None)
    state: Optional[str] = Field(
        default=None,
        description="State or territory code. Example: 'QLD'"
    )
    phone: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)
    abn: Optional[str] = Field(
        default=None,
        description="Australian Business Number."
    )
    grower_code: Optional[str] = Field(
        default=None,
        description="The code a receiver uses for this grower in its own systems. Example: 'SRF01'"
    )

    public_intake_token: Optional[str] = Field(
        default=None,
        unique=True,
        index=True,
        description="Receivers only. Opaque token that lets growers without an account submit deliveries."
    )


class User(TimestampMixin, SQLModel, table=True):
    """
    A person who signs in. Each user acts for at most one business, under one role.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="The unique identifier for the user."
    )
    email: str = Field(
        unique=True,
        index=True,
        description="The login email address. Example: 'jo@sunnyridge.com.au'"
    )
    hashed_password: str = Field(
        description="bcrypt hash of the password. Never store plain text."
    )
    display_name: str = Field(default="")
    company_name: str = Field(default="")
    phone: Optional[str] = Field(default=None)
    grower_code: Optional[str] = Field(default=None)

    role: UserRole = Field(
        default=UserRole.SUPPLIER,
        description="Which side of a delivery this user works on."
    )
    staff_position: Optional[StaffPosition] = Field(
        default=None,
        description="Staff only. 'admin' grants platform-wide administration."
    )
    business_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="business.id",
        index=True,
        description="The business this user acts for."
    )
    is_active: bool = Field(
        default=True,
        description="Soft delete flag. If False, user cannot sign in."
    )


class Dispatch(TimestampMixin, SQLModel, table=True):
    """
    The central record: one consignment of produce travelling from a grower
    to a receiver. The status field only moves along the lifecycle edges and
    every change is mirrored by an append-only DispatchEvent.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Internal identifier."
    )
    display_id: str = Field(
        unique=True,
        index=True,
        description="Human readable reference printed on paperwork. Example: 'FD-7K2Q9M'"
    )
    delivery_advice_number: Optional[str] = Field(
        default=None,
        unique=True,
        description="Assigned the first time a delivery advice document is generated, then reused. Example: 'DA-2026-00042'"
    )
    delivery_advice_generated_at: Optional[datetime] = Field(default=None)
    qr_code_token: str = Field(
        unique=True,
        index=True,
        description="Token embedded in the scannable status link."
    )

    # Parties
    supplier_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="user.id",
        description="The user who submitted the dispatch. Null for public intake submissions."
    )
    supplier_business_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="business.id",
        index=True
    )
    receiver_business_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="business.id",
        index=True
    )
    transporter_business_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="business.id"
    )

    # Denormalized grower identity, always populated
    grower_name: str = Field(index=True)
    grower_code: Optional[str] = Field(default=None)

    # Transport
    carrier: Optional[str] = Field(default=None)
    truck_number: Optional[str] = Field(default=None)
    transporter_con_note_number: str = Field(
        default="",
        description="The carrier's own consignment note number. Required before pickup."
    )
    transporter_con_note_photo_url: Optional[str] = Field(default=None)
    transporter_notes: Optional[str] = Field(default=None)

    # Timing
    dispatch_date: date = Field(index=True)
    expected_arrival: Optional[date] = Field(default=None, index=True)
    estimated_arrival_window_start: Optional[str] = Field(
        default=None,
        description="Example: '05:00'"
    )
    estimated_arrival_window_end: Optional[str] = Field(default=None)
    current_eta: Optional[str] = Field(default=None)
    pickup_time: Optional[datetime] = Field(default=None)

    temperature_zone: Optional[TemperatureZone] = Field(default=None)
    commodity_class: Optional[str] = Field(default=None)
    total_pallets: int = Field(default=0)
    notes: Optional[str] = Field(default=None)
    photos: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Public URLs of photos attached by the grower."
    )

    # Receiving
    internal_lot_number: Optional[str] = Field(
        default=None,
        description="The receiver's warehouse lot number. Its absence on an arrived dispatch drives the 'received-pending-admin' display state."
    )
    receiving_temperature: Optional[float] = Field(default=None)

    status: DispatchStatus = Field(
        default=DispatchStatus.PENDING,
        index=True
    )

    items: List["DispatchItem"] = Relationship(back_populates="dispatch")
    issues: List["ReceivingIssue"] = Relationship(back_populates="dispatch")
    events: List["DispatchEvent"] = Relationship(back_populates="dispatch")


class DispatchItem(SQLModel, table=True):
    """
    A line on the delivery advice. Owned by exactly one dispatch and never
    modified after submission.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    dispatch_id: uuid.UUID = Field(foreign_key="dispatch.id", index=True)
    position: int = Field(
        default=0,
        description="Zero based line number, preserves submission order."
    )

    product: str = Field(description="Example: 'Bananas'")
    variety: Optional[str] = Field(default=None, description="Example: 'Cavendish'")
    size: Optional[str] = Field(default=None, description="Size or grade. Example: 'Large'")
    tray_type: Optional[str] = Field(default=None, description="Pack type. Example: 'Carton'")
    quantity: int = Field(default=0)
    unit_weight: Optional[float] = Field(
        default=None,
        description="Kilograms per unit."
    )
    weight: Optional[float] = Field(
        default=None,
        description="Stored aggregate weight in kilograms, used when no unit weight is known."
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    dispatch: Dispatch = Relationship(back_populates="items")


class ReceivingIssue(SQLModel, table=True):
    """
    A problem flagged against a dispatch. The presence of any row forces the
    dispatch into the 'issue' state.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    dispatch_id: uuid.UUID = Field(foreign_key="dispatch.id", index=True)
    issue_type: IssueType
    severity: IssueSeverity = Field(default=IssueSeverity.MEDIUM)
    description: str
    photo_url: Optional[str] = Field(default=None)
    item_index: Optional[int] = Field(default=None)
    flagged_by: Optional[uuid.UUID] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    dispatch: Dispatch = Relationship(back_populates="issues")


class DispatchEvent(SQLModel, table=True):
    """
    Immutable timeline entry for a dispatch. Rows are only ever inserted;
    corrections are recorded as new events. 'sequence' gives a strict
    insertion order per dispatch.
    """
    __table_args__ = (
        UniqueConstraint("dispatch_id", "sequence", name="uq_dispatchevent_sequence"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    dispatch_id: uuid.UUID = Field(foreign_key="dispatch.id", index=True)
    sequence: int = Field(
        description="1-based position of this event in the dispatch timeline."
    )
    event_type: DispatchEventType
    triggered_by_user_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="user.id"
    )
    triggered_by_role: str = Field(
        default="anonymous",
        description="Role of the actor. 'anonymous' or 'external_supplier' when nobody was signed in."
    )
    details: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="Event specific payload. Example: {'con_note_number': 'CN-1234'}"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    dispatch: Dispatch = Relationship(back_populates="events")


class Connection(SQLModel, table=True):
    """
    Approval gated relationship between a supplier business and a receiver
    business. Suppliers may only address receivers they are approved with.
    """
    __table_args__ = (
        UniqueConstraint("supplier_business_id", "receiver_business_id",
                         name="uq_connection_pair"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    supplier_business_id: uuid.UUID = Field(foreign_key="business.id", index=True)
    receiver_business_id: uuid.UUID = Field(foreign_key="business.id", index=True)
    status: ConnectionStatus = Field(default=ConnectionStatus.PENDING)
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    responded_at: Optional[datetime] = Field(default=None)


class SupplierIntakeLink(SQLModel, table=True):
    """
    A short, shareable link that pre-fills the public intake form for one
    named grower of one receiver.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    short_code: str = Field(unique=True, index=True)
    intake_token: str = Field(index=True)
    grower_name: str
    grower_code: Optional[str] = Field(default=None)
    grower_email: Optional[str] = Field(default=None)
    grower_phone: Optional[str] = Field(default=None)
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DispatchTemplate(SQLModel, table=True):
    """
    Saved form values a supplier reuses for repeat deliveries.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    business_id: uuid.UUID = Field(foreign_key="business.id", index=True)
    receiver_business_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="business.id"
    )
    template_name: str
    template_data: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    last_used_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DeliveryAdviceSequence(SQLModel, table=True):
    """Per-year counter behind delivery advice numbers."""
    year: int = Field(primary_key=True)
    last_value: int = Field(default=0)
