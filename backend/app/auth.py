"""Password hashing, bearer tokens and the access checks used by the routes.

Tokens carry the user id as subject and the role for clients that need to
pick a view; the role in the token is informational only, every request
reloads the account and its permissions.
"""

import os
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from app.acl import PERM_VIEW_LEARNER_PROGRESS
from app.database import get_session
from app.models import User

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    claims = dict(data)
    claims["exp"] = datetime.utcnow() + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def issue_token(user: User) -> dict:
    """Token response for a signed in account."""
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"access_token": token, "token_type": "bearer", "role": user.role}


def token_user_id(token: str) -> int | None:
    """User id from a valid token, ``None`` for anything unreadable or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def _with_permissions(*criteria):
    return select(User).where(*criteria).options(selectinload(User.permissions))


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    result = await db.execute(_with_permissions(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Signed in account; suspended or pending accounts lose access at once."""
    user = None
    user_id = token_user_id(token)
    if user_id is not None:
        result = await db.execute(_with_permissions(User.id == user_id))
        user = result.scalar_one_or_none()
    if user is None or user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def has_permission(user: User, permission: str) -> bool:
    if user.role == "admin":
        return True
    return permission in {p.name for p in user.permissions}


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
    )


def require_role(*roles: str):
    async def role_dependency(current_user: User = Depends(get_current_user)):
        if current_user.role not in roles:
            raise _forbidden()
        return current_user

    return role_dependency


def require_permissions(*perms: str):
    """Dependency factory; admins pass every permission check."""

    async def perm_dependency(current_user: User = Depends(get_current_user)):
        if not all(has_permission(current_user, perm) for perm in perms):
            raise _forbidden()
        return current_user

    return perm_dependency


def can_view_learner(current_user: User, user_id: int) -> bool:
    """Learners see their own records; staff with the permission see anyone's."""
    return current_user.id == user_id or has_permission(
        current_user, PERM_VIEW_LEARNER_PROGRESS
    )


def learner_in_scope(current_user: User, user_id: int | None) -> int:
    """Resolve an optional ``user_id`` query parameter to the learner to show."""
    target = user_id if user_id is not None else current_user.id
    if not can_view_learner(current_user, target):
        raise _forbidden()
    return target
