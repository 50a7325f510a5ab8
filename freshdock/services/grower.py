import secrets
from datetime import datetime
from typing import Optional
from fastapi import HTTPException, BackgroundTasks
from loguru import logger
from sqlmodel import Session, select

from freshdock.core.config import settings
from freshdock.core.notifications import notify_grower_invited
from freshdock.db.schema import (
    Business, BusinessType, Connection, ConnectionStatus, User, UserRole
)
from freshdock.models.auth import SessionContext
from freshdock.models.grower import GrowerSetup, GrowerSetupResult
from .password import get_password_hash
from .user import UserService

MIN_TEMP_PASSWORD = 6


class GrowerService:
    def __init__(self, session: Session):
        self.session = session

    def setup_grower(
        self,
        ctx: SessionContext,
        data: GrowerSetup,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> GrowerSetupResult:
        """
        Creates a supplier login for a grower, linked to a grower business
        that is connected to the admin's receiving business.
        """
        if not ctx.is_admin:
            raise HTTPException(status_code=403, detail="Forbidden: admin only")

        email = data.email

        if data.action == "create_with_password":
            if not data.temp_password or len(data.temp_password) < MIN_TEMP_PASSWORD:
                raise HTTPException(
                    status_code=400, detail="Password must be at least 6 characters")
            password = data.temp_password
        else:
            # Replaced when the grower follows the invitation
            password = secrets.token_urlsafe(32)

        users = UserService(self.session)
        if users.get_user_by_email(email):
            raise HTTPException(
                status_code=409, detail="A user with this email already exists.")

        business = None
        if data.business_id:
            business = self.session.get(Business, data.business_id)
            if not business or business.business_type != BusinessType.SUPPLIER:
                raise HTTPException(status_code=404, detail="Grower business not found.")

        grower_name = (data.grower_name or "").strip() or (business.name if business else email)
        grower_code = (data.grower_code or "").strip() or None

        try:
            user = User(
                email=email,
                hashed_password=get_password_hash(password),
                display_name=grower_name,
                company_name=grower_name,
                grower_code=grower_code,
                role=UserRole.SUPPLIER,
                is_active=True,
            )
            self.session.add(user)
            self.session.flush()

            if business:
                # Hand the existing business over to the new login
                business.owner_id = user.id
                business.email = email
            else:
                business = Business(
                    name=grower_name,
                    business_type=BusinessType.SUPPLIER,
                    owner_id=user.id,
                    email=email,
                    grower_code=grower_code,
                )
            self.session.add(business)
            self.session.flush()

            user.business_id = business.id
            self.session.add(user)
            self._ensure_connection(business, ctx)

            self.session.commit()
            self.session.refresh(user)
        except Exception:
            self.session.rollback()
            logger.exception(f"Grower setup failed for {email}")
            raise HTTPException(status_code=500, detail="Could not set up the grower account.")

        logger.info(f"Grower {email} provisioned ({data.action}) by {ctx.user_id}")

        if data.action == "invite":
            token = users.generate_invite_token(user)
            sign_in_url = f"{settings.app_url}/accept-invite?token={token}"
            if background_tasks is not None:
                background_tasks.add_task(notify_grower_invited, email, grower_name, sign_in_url)
            message = "Invite sent"
        else:
            message = "Account created"

        return GrowerSetupResult(
            success=True,
            message=message,
            user_id=user.id,
            business_id=user.business_id,
        )

    def _ensure_connection(self, grower_business: Business, ctx: SessionContext):
        """An admin-provisioned grower can send to the admin's business straight away."""
        if not ctx.business_id or ctx.business_type != BusinessType.RECEIVER:
            return
        existing = self.session.exec(
            select(Connection)
            .where(Connection.supplier_business_id == grower_business.id)
            .where(Connection.receiver_business_id == ctx.business_id)
        ).first()
        now = datetime.utcnow()
        if existing:
            existing.status = ConnectionStatus.APPROVED
            existing.responded_at = now
            self.session.add(existing)
            return
        self.session.add(Connection(
            supplier_business_id=grower_business.id,
            receiver_business_id=ctx.business_id,
            status=ConnectionStatus.APPROVED,
            responded_at=now,
        ))
