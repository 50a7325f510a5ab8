from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from freshdock.core.dependencies import (
    get_user_service, get_current_user, get_session_context
)
from freshdock.services.user import UserService
from freshdock.db.schema import User
from freshdock.models.auth import Token, TokenAccess, TokenRefresh, SessionContext
from freshdock.models.user import UserSignin, UserRead, UserCreate, InviteAccept


router = APIRouter()


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=UserRead,
    summary="Register a new account",
    description="Creates a user together with the receiving business or farm they act for."
)
def signup(
    user_in: UserCreate,
    service: UserService = Depends(get_user_service)
):
    """
    1. Validates input (Pydantic).
    2. Calls Service to create User + Business (Atomic).
    3. Returns public user info.
    """
    try:
        return service.create_user(user_in)
    except ValueError as e:
        logger.warning(f"Signup validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except Exception:
        logger.exception("Unexpected error during signup")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while processing your request."
        )


@router.post(
    "/signin",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Signin to get tokens",
    description="Returns an Access Token (short-lived) and Refresh Token (long-lived)."
)
def signin(
    signin_data: UserSignin,
    service: UserService = Depends(get_user_service)
):
    user = service.authenticate_user(signin_data.email, signin_data.password)

    if not user:
        # Same answer for unknown email and wrong password
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated. Please contact your receiver."
        )

    tokens = service.generate_tokens(user)
    logger.info(f"User logged in: {user.id}")
    return tokens


@router.post(
    "/refresh",
    response_model=TokenAccess,
    status_code=status.HTTP_200_OK,
    summary="Refresh Session",
    description="Exchanges a valid Refresh Token for a new Access Token."
)
def refresh_token(
    refresh_data: TokenRefresh,
    service: UserService = Depends(get_user_service)
):
    return TokenAccess(access_token=service.refresh_session(refresh_data.refresh_token))


@router.post(
    "/accept-invite",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Accept a grower invitation",
    description="Sets the password of an invited grower and returns tokens."
)
def accept_invite(
    data: InviteAccept,
    service: UserService = Depends(get_user_service)
):
    return service.accept_invite(data.token, data.password)


@router.get(
    "/me",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Returns the profile information of the currently authenticated user."
)
def get_me(
    current_user: User = Depends(get_current_user)
):
    return current_user


@router.get(
    "/me/context",
    response_model=SessionContext,
    status_code=status.HTTP_200_OK,
    summary="Get session context",
    description="The role, staff position and business the caller acts for."
)
def get_my_context(
    ctx: SessionContext = Depends(get_session_context)
):
    return ctx
