from typing import List
from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session
from users_service.api.dependencies import get_current_identity
from users_service.core.database import get_db
from users_service.core.identity import Identity
from users_service.schemas.user import (
    CreateUserRequest,
    UpdateUserRequest,
    UserResponse,
    UserStatsResponse,
)
from users_service.services.authorization import Action, require, strip_role_change
from users_service.services.user_service import ALL_FILTER, user_service

router = APIRouter(prefix="/users", tags=["users"])

# Upper bound of the INTEGER id column on PostgreSQL
MAX_USER_ID = 2**31 - 1

# Fixed paths (/me, /search, /stats) are declared before /{user_id} so they
# are not captured by the id route


@router.get("", response_model=List[UserResponse])
def list_users(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """List all users"""
    require(identity, Action.LIST_USERS)
    return user_service.get_all_users(db)


@router.get("/me", response_model=UserResponse)
def get_my_profile(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Get the authenticated user's own record"""
    require(identity, Action.READ_SELF, identity.user_id)
    return user_service.get_user_by_id(identity.user_id, db)


@router.get("/search", response_model=List[UserResponse])
def search_users(
    name: str = Query(ALL_FILTER),
    role: str = Query(ALL_FILTER),
    status_filter: str = Query(ALL_FILTER, alias="status"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Search users by name substring, role and status; "all" disables a filter"""
    require(identity, Action.SEARCH_USERS)
    return user_service.get_users_by_filters(db, name=name, role=role, status=status_filter)


@router.get("/stats", response_model=UserStatsResponse)
def get_user_stats(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """User counts by status and role"""
    require(identity, Action.VIEW_STATS)
    return user_service.get_user_stats(db)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int = Path(ge=1, le=MAX_USER_ID),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Get a user by id (Admin, or the user themself)"""
    require(identity, Action.READ_USER, user_id)
    return user_service.get_user_by_id(user_id, db)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    request: CreateUserRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Create a user (Admin only)"""
    require(identity, Action.CREATE_USER)
    return user_service.create_user(request, db)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    request: UpdateUserRequest,
    user_id: int = Path(ge=1, le=MAX_USER_ID),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Partially update a user (Admin, or the user themself).

    A role change from a non-admin is dropped and the remaining fields apply.
    """
    require(identity, Action.UPDATE_USER, user_id)
    patch = strip_role_change(identity, request.to_patch())
    return user_service.update_user(user_id, patch, db)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int = Path(ge=1, le=MAX_USER_ID),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Delete a user (Admin only)"""
    require(identity, Action.DELETE_USER, user_id)
    user_service.delete_user(user_id, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{user_id}/last-login", response_model=UserResponse)
def update_last_login(
    user_id: int = Path(ge=1, le=MAX_USER_ID),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Stamp today's date as the user's last login (Admin, or the user themself)"""
    require(identity, Action.UPDATE_LAST_LOGIN, user_id)
    return user_service.update_last_login(user_id, db)
