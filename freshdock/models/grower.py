from typing import Literal, Optional
from uuid import UUID
from pydantic import EmailStr, StringConstraints
from sqlmodel import SQLModel, Field
from typing_extensions import Annotated


class GrowerSetup(SQLModel):
    """
    Admin provisioning of a grower login. 'invite' emails a set-password link;
    'create_with_password' sets a temporary password the admin hands over.
    """
    action: Literal["invite", "create_with_password"]
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(max_length=255)
    grower_name: Optional[str] = Field(default=None, max_length=200)
    grower_code: Optional[str] = Field(default=None, max_length=50)
    business_id: Optional[UUID] = Field(
        default=None,
        description="Existing grower business to hand over to the new login."
    )
    temp_password: Optional[str] = Field(default=None, max_length=72)


class GrowerSetupResult(SQLModel):
    success: bool = True
    message: str
    user_id: UUID
    business_id: Optional[UUID] = None
