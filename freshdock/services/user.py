from typing import Optional
import uuid
import secrets
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlmodel import Session, select
from fastapi import HTTPException, status

from freshdock.core.config import settings
from freshdock.db.schema import (
    User, Business, BusinessType, UserRole, StaffPosition
)
from freshdock.models.auth import Token, TokenData, SessionContext
from freshdock.models.user import UserCreate
from .password import get_password_hash, verify_password


class UserService:
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _create_jwt(self, subject: str, expires_delta: timedelta, type: str) -> str:
        """Helper to sign JWTs with specific types."""
        to_encode = {
            "sub": str(subject),
            "exp": datetime.utcnow() + expires_delta,
            "type": type
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        statement = select(User).where(User.id == user_id)
        return self.session.exec(statement).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email.lower())
        return self.session.exec(statement).first()

    def build_context(self, user: User) -> SessionContext:
        """
        Resolves the business the user acts for and freezes it into a SessionContext.
        """
        business_type = None
        if user.business_id:
            business = self.session.get(Business, user.business_id)
            if business:
                business_type = business.business_type
            else:
                logger.warning(
                    f"User {user.id} points at missing business {user.business_id}")

        return SessionContext(
            user_id=user.id,
            email=user.email,
            role=user.role,
            staff_position=user.staff_position,
            business_id=user.business_id if business_type else None,
            business_type=business_type,
        )

    def create_user(self, user_in: UserCreate) -> User:
        """
        Orchestrates sign-up: User + Business (+ intake token for receivers).
        """
        # 1. Check User Existence
        if self.get_user_by_email(user_in.email):
            raise ValueError("A user with this email already exists.")

        is_receiver = user_in.account_type == BusinessType.RECEIVER

        try:
            # --- START ATOMIC TRANSACTION ---

            # A. Create User
            new_user = User(
                email=user_in.email,
                hashed_password=get_password_hash(user_in.password),
                display_name=user_in.display_name,
                company_name=user_in.company_name,
                phone=user_in.phone,
                grower_code=user_in.grower_code,
                role=UserRole.STAFF if is_receiver else UserRole.SUPPLIER,
                # The person who signs a receiver up administers it
                staff_position=StaffPosition.ADMIN if is_receiver else None,
                is_active=True
            )
            self.session.add(new_user)
            self.session.flush()

            # B. Create Business
            business = Business(
                name=user_in.company_name,
                business_type=user_in.account_type,
                owner_id=new_user.id,
                email=user_in.email,
                phone=user_in.phone,
                state=user_in.state,
                grower_code=user_in.grower_code,
                public_intake_token=secrets.token_urlsafe(24) if is_receiver else None,
            )
            self.session.add(business)
            self.session.flush()

            new_user.business_id = business.id
            self.session.add(new_user)

            # --- COMMIT ---
            self.session.commit()
            self.session.refresh(new_user)

            logger.info(
                f"Registration successful for {new_user.email} ({business.business_type.value})")
            return new_user

        except Exception as e:
            self.session.rollback()
            logger.error(f"Registration failed: {str(e)}")
            raise e

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Verify email and password hash."""
        user = self.get_user_by_email(email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def generate_access_token(self, user: User) -> str:
        return self._create_jwt(
            subject=user.id,
            expires_delta=timedelta(
                minutes=settings.access_token_expire_minutes),
            type="access"
        )

    def generate_refresh_token(self, user: User) -> str:
        return self._create_jwt(
            subject=user.id,
            expires_delta=timedelta(
                minutes=settings.refresh_token_expire_minutes),
            type="refresh"
        )

    def generate_tokens(self, user: User) -> Token:
        return Token(
            access_token=self.generate_access_token(user),
            refresh_token=self.generate_refresh_token(user),
            token_type="bearer"
        )

    def _verify_token(self, token: str, expected_type: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            user_id = payload.get("sub")
            token_type = payload.get("type")

            if not user_id or token_type != expected_type:
                return None

            return TokenData(user_id=uuid.UUID(user_id))
        except (jwt.PyJWTError, ValueError):
            return None

    def verify_access_token(self, token: str) -> Optional[TokenData]:
        return self._verify_token(token, "access")

    def verify_refresh_token(self, token: str) -> Optional[TokenData]:
        return self._verify_token(token, "refresh")

    def generate_invite_token(self, user: User) -> str:
        return self._create_jwt(
            subject=user.id,
            expires_delta=timedelta(days=settings.invite_token_expire_days),
            type="invite"
        )

    def accept_invite(self, token: str, password: str) -> Token:
        """Sets the password of an invited grower and signs them in."""
        token_data = self._verify_token(token, "invite")
        user = self.validate_user(token_data.user_id) if token_data else None
        if not user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This invitation link is invalid or has expired."
            )

        user.hashed_password = get_password_hash(password)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"Invite accepted by {user.email}")
        return self.generate_tokens(user)

    def validate_user(self, user_id: uuid.UUID) -> Optional[User]:
        """Retrieves user and checks is_active flag."""
        user = self.get_user_by_id(user_id)
        if not user or not user.is_active:
            return None
        return user

    def refresh_session(self, refresh_token: str) -> str:
        """
        Exchange a valid refresh token for a new access token.
        Strictly validates the user state before issuing.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        # 1. Verify Token Signature & Type
        token_data = self.verify_refresh_token(refresh_token)
        if not token_data:
            raise credentials_exception

        # 2. Verify User Exists & Is Active
        user = self.validate_user(token_data.user_id)
        if not user:
            raise credentials_exception

        # 3. Issue New Access Token
        return self.generate_access_token(user)
