from typing import Optional
from uuid import UUID
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints, field_validator
from typing_extensions import Annotated
from freshdock.db.schema import BusinessType, UserRole, StaffPosition


class UserRead(SQLModel):
    id: UUID
    email: str
    display_name: str
    company_name: str
    role: UserRole
    staff_position: Optional[StaffPosition] = None
    business_id: Optional[UUID] = None
    is_active: bool


class UserSignin(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Registered email address of the user.",
        max_length=255
    )
    password: str = Field(
        min_length=6,
        max_length=72,
        description="Plain text password."
    )


class UserCreate(SQLModel):
    """
    DTO for self sign-up.
    Creates the user together with the business they act for (receiver or supplier).
    """
    display_name: str = Field(
        min_length=1,
        max_length=100,
        description="The person's name, shown on timelines."
    )
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Unique email address for signin.",
        max_length=255
    )
    password: str = Field(
        min_length=8,
        max_length=72,
        description="Plain text password. bcrypt only uses the first 72 bytes."
    )

    company_name: str = Field(
        min_length=2,
        max_length=200,
        description="Trading name of the receiving business or farm."
    )
    account_type: BusinessType = Field(
        description="The type of business to create: 'receiver' or 'supplier'."
    )
    phone: Optional[str] = Field(default=None, max_length=30)
    state: Optional[str] = Field(default=None, max_length=10)
    grower_code: Optional[str] = Field(default=None, max_length=50)

    @field_validator("account_type")
    @classmethod
    def no_new_transporters(cls, value: BusinessType) -> BusinessType:
        if value == BusinessType.TRANSPORTER:
            raise ValueError("Transporter accounts are no longer available.")
        return value


class InviteAccept(SQLModel):
    token: str = Field(description="The token from the invitation email.")
    password: str = Field(min_length=6, max_length=72)
