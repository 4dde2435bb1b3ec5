from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.schemas import UserCreate, UserResponse, UserMeResponse, SessionRead
from app.models import User
from app.database import get_session
from app.crud import create_user, get_user_by_email, get_sessions_for_user
from app.auth import get_password_hash, require_permissions, get_current_user
from app.acl import PERM_MANAGE_USERS

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserResponse)
async def create_user_route(
    user: UserCreate,
    role: str = "learner",
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_USERS)),
):
    """Create an account directly, e.g. for an instructor."""
    if role not in ("learner", "instructor", "admin"):
        raise HTTPException(status_code=400, detail="Unknown role")
    existing = await get_user_by_email(db, user.email)
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    hashed = get_password_hash(user.password)
    user_model = User(name=user.name, email=user.email, password_hash=hashed, role=role)
    return await create_user(db, user_model)


@router.get("/me", response_model=UserMeResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Return details for the authenticated user."""
    return UserMeResponse(
        id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        role=current_user.role,
        status=current_user.status,
        permissions=[p.name for p in current_user.permissions],
    )


@router.get("/me/sessions", response_model=list[SessionRead])
async def read_my_sessions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Sessions the authenticated user is enrolled in."""
    return await get_sessions_for_user(db, current_user.id)
