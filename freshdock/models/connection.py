from typing import Optional
from datetime import datetime
from uuid import UUID
from sqlmodel import SQLModel, Field

from freshdock.db.schema import ConnectionStatus, BusinessType


class ConnectionRequest(SQLModel):
    receiver_business_id: UUID = Field(description="The receiver the grower wants to send to.")


class ConnectionRespond(SQLModel):
    approve: bool


class ConnectionRead(SQLModel):
    id: UUID
    supplier_business_id: UUID
    receiver_business_id: UUID
    status: ConnectionStatus
    requested_at: datetime
    responded_at: Optional[datetime] = None

    # The business on the other side of the relationship, from the caller's view
    partner_name: Optional[str] = None
    partner_type: Optional[BusinessType] = None
