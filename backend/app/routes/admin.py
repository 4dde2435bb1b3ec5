"""Administrative endpoints: users, permissions, archiving and maintenance."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import ALL_PERMISSIONS, PERM_ARCHIVE_SESSIONS, get_default_permissions_for_role
from app.archive import archive_session_data
from app.auth import get_password_hash, require_permissions, require_role
from app.badges import check_and_create_missing_badges
from app.cache import ScoreCache
from app.crud import (
    assign_permissions_by_names,
    delete_user,
    get_all_permissions,
    get_all_users,
    get_user,
    remove_permissions_by_names,
    save_user,
)
from app.database import get_session
from app.models import User
from app.progress import ProgressStore
from app.schemas import (
    PermissionRead,
    PermissionsUpdate,
    RoleUpdate,
    UserResponse,
    UserUpdate,
)
from app.state import get_progress_store, get_score_cache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/users", response_model=list[UserResponse])
async def admin_list_users(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    return await get_all_users(db)


@router.get("/users/{user_id}", response_model=UserResponse)
async def admin_get_user(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    return await _get_user_or_404(db, user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
async def admin_update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await _get_user_or_404(db, user_id)
    if data.password is not None:
        user.password_hash = get_password_hash(data.password)
    for field, value in data.model_dump(exclude_unset=True, exclude={"password"}).items():
        setattr(user, field, value)
    return await save_user(db, user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
    store: ProgressStore = Depends(get_progress_store),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    user = await _get_user_or_404(db, user_id)
    await delete_user(db, user)
    store.clear()
    score_cache.invalidate_user(user_id)


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def admin_update_role(
    user_id: int,
    data: RoleUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    """Change a user's role and reset their permissions to the role defaults."""
    user = await _get_user_or_404(db, user_id)
    user.role = data.role
    user = await save_user(db, user)
    await remove_permissions_by_names(db, user, ALL_PERMISSIONS)
    await assign_permissions_by_names(db, user, get_default_permissions_for_role(data.role))
    logger.info("User %s is now %s", user_id, data.role)
    return user


@router.get("/permissions", response_model=list[PermissionRead])
async def admin_list_permissions(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    return await get_all_permissions(db)


@router.get("/users/{user_id}/permissions", response_model=list[PermissionRead])
async def admin_user_permissions(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await _get_user_or_404(db, user_id)
    return user.permissions


@router.post("/users/{user_id}/permissions", response_model=list[PermissionRead])
async def admin_grant_permissions(
    user_id: int,
    data: PermissionsUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    unknown = set(data.permissions) - set(ALL_PERMISSIONS)
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown permissions: {', '.join(sorted(unknown))}"
        )
    user = await _get_user_or_404(db, user_id)
    await assign_permissions_by_names(db, user, data.permissions)
    await db.refresh(user, attribute_names=["permissions"])
    return user.permissions


@router.delete("/users/{user_id}/permissions", response_model=list[PermissionRead])
async def admin_revoke_permissions(
    user_id: int,
    data: PermissionsUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await _get_user_or_404(db, user_id)
    await remove_permissions_by_names(db, user, data.permissions)
    await db.refresh(user, attribute_names=["permissions"])
    return user.permissions


@router.post("/sessions/{session_id}/archive")
async def admin_archive_session(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_ARCHIVE_SESSIONS)),
):
    """Snapshot session and course titles into certificates and badges."""
    result = await archive_session_data(db, session_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "session_id": result.session_id,
        "certificates": result.certificates,
        "badges": result.badges,
    }


@router.post("/users/{user_id}/check-badges")
async def admin_check_badges(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    await _get_user_or_404(db, user_id)
    created = await check_and_create_missing_badges(db, user_id)
    return {"user_id": user_id, "created": len(created)}


@router.post("/caches/clear", status_code=status.HTTP_204_NO_CONTENT)
async def admin_clear_caches(
    current_user: User = Depends(require_role("admin")),
    store: ProgressStore = Depends(get_progress_store),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    store.clear()
    score_cache.clear()
    logger.info("Caches cleared by %s", current_user.email)
