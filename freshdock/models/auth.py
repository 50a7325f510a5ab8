from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel

from freshdock.db.schema import UserRole, StaffPosition, BusinessType


class Token(SQLModel):
    access_token: str
    refresh_token: str
    token_type: str


class TokenAccess(SQLModel):
    access_token: str


class TokenRefresh(SQLModel):
    refresh_token: str


class TokenData(SQLModel):
    user_id: UUID


PLANNING_POSITIONS = frozenset({
    StaffPosition.ADMIN,
    StaffPosition.WAREHOUSE_MANAGER,
    StaffPosition.OPERATIONS,
})


class SessionContext(BaseModel):
    """
    Who is acting, for which business, under which role.
    Built once per request and handed to services explicitly.
    """
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    email: str
    role: UserRole
    staff_position: Optional[StaffPosition] = None
    business_id: Optional[UUID] = None
    business_type: Optional[BusinessType] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.STAFF and self.staff_position == StaffPosition.ADMIN

    @property
    def can_receive(self) -> bool:
        return self.role == UserRole.STAFF

    @property
    def can_plan(self) -> bool:
        return self.role == UserRole.STAFF and self.staff_position in PLANNING_POSITIONS

    @property
    def actor_role(self) -> str:
        return self.role.value
