from typing import Any, Dict, Optional
from datetime import datetime
from uuid import UUID
from sqlmodel import SQLModel, Field


class TemplateCreate(SQLModel):
    template_name: str = Field(min_length=1, max_length=100, schema_extra={"examples": ["Monday bananas"]})
    receiver_business_id: Optional[UUID] = None
    template_data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Saved dispatch form values: carrier, items, temperature zone and so on."
    )


class TemplateUpdate(SQLModel):
    template_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    receiver_business_id: Optional[UUID] = None
    template_data: Optional[Dict[str, Any]] = None


class TemplateRead(SQLModel):
    id: UUID
    business_id: UUID
    receiver_business_id: Optional[UUID] = None
    template_name: str
    template_data: Dict[str, Any] = {}
    last_used_at: Optional[datetime] = None
    created_at: datetime
