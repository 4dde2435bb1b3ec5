"""Sign in and registration.

``/login`` takes JSON for the frontend, ``/token`` the OAuth2 form used by
the interactive docs; both go through the same credential checks.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import authenticate_user, issue_token
from app.crud import count_users, create_user, get_user_by_email
from app.database import get_session
from app.models import User
from app.schemas.user import UserCreate, UserLogin, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])


async def _sign_in(db: AsyncSession, email: str, password: str) -> dict:
    user = await authenticate_user(db, email, password)
    if user is None:
        logger.warning("Failed login for %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "auth_invalid_credentials",
                "message": "Invalid email or password",
            },
        )
    if user.status != "active":
        logger.info("Refused login for %s account %s", user.status, user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "auth_account_inactive",
                "message": "Account is not active",
            },
        )
    logger.info("User %s (%s) signed in", user.id, user.role)
    return issue_token(user)


@router.post("/login")
async def login(user_in: UserLogin, db: AsyncSession = Depends(get_session)):
    return await _sign_in(db, user_in.email, user_in.password)


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    return await _sign_in(db, form_data.username, form_data.password)


@router.get("/needs-admin")
async def needs_admin(db: AsyncSession = Depends(get_session)):
    """``True`` until the first account, which becomes the admin, exists."""
    return {"needs_admin": await count_users(db) == 0}


@router.post("/register", response_model=UserResponse)
async def register(user_in: UserCreate, db: AsyncSession = Depends(get_session)):
    """Open learner sign up; the very first account becomes admin."""
    if await get_user_by_email(db, user_in.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_email_registered",
                "message": "Email is already registered.",
            },
        )
    role = "admin" if await count_users(db) == 0 else "learner"
    user = await create_user(
        db,
        User(
            name=user_in.name,
            email=user_in.email,
            password_hash=user_in.password,
            role=role,
        ),
    )
    logger.info("User %s registered as %s", user.id, role)
    return user
