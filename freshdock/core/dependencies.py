from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from sqlmodel import Session
from pydantic import ValidationError

from freshdock.db.core import get_session
from freshdock.db.schema import User
from freshdock.models.auth import SessionContext
from freshdock.services.user import UserService
from freshdock.services.dispatch import DispatchService
from freshdock.services.delivery_advice import DeliveryAdviceService
from freshdock.services.intake import IntakeService
from freshdock.services.business import BusinessService
from freshdock.services.connection import ConnectionService
from freshdock.services.template import TemplateService
from freshdock.services.grower import GrowerService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/signin")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/signin", auto_error=False)


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    """Creates a UserService instance using the active DB session."""
    return UserService(session)


def get_dispatch_service(session: Session = Depends(get_session)) -> DispatchService:
    return DispatchService(session=session)


def get_delivery_advice_service(session: Session = Depends(get_session)) -> DeliveryAdviceService:
    return DeliveryAdviceService(session=session)


def get_intake_service(session: Session = Depends(get_session)) -> IntakeService:
    return IntakeService(session=session)


def get_business_service(session: Session = Depends(get_session)) -> BusinessService:
    return BusinessService(session=session)


def get_connection_service(session: Session = Depends(get_session)) -> ConnectionService:
    return ConnectionService(session=session)


def get_template_service(session: Session = Depends(get_session)) -> TemplateService:
    return TemplateService(session=session)


def get_grower_service(session: Session = Depends(get_session)) -> GrowerService:
    return GrowerService(session=session)


def _resolve_user(token: str, service: UserService) -> Optional[User]:
    try:
        token_data = service.verify_access_token(token)
    except (InvalidTokenError, ValidationError):
        return None
    if not token_data:
        return None
    return service.get_user_by_id(token_data.user_id)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: UserService = Depends(get_user_service)
) -> User:
    """
    Validates the JWT token and retrieves the user.
    This is the gatekeeper for protected routes.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user = _resolve_user(token, service)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    return user


def get_session_context(
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
) -> SessionContext:
    """The caller's identity, role and business, frozen for this request."""
    return service.build_context(user)


def get_optional_session_context(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    service: UserService = Depends(get_user_service)
) -> Optional[SessionContext]:
    """Same as get_session_context, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    user = _resolve_user(token, service)
    if user is None or not user.is_active:
        return None
    return service.build_context(user)
