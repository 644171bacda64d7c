"""Spaces, the current-space preference and the profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kyndra.deps import current_user, profile_service, spaces_service
from kyndra.domain.models import (
    CurrentSpace,
    ProfileUpdate,
    ProfileView,
    Space,
    SpaceCreateRequest,
    SpaceSelection,
    User,
)

router = APIRouter(tags=["spaces"])


@router.get("/spaces", response_model=list[Space])
def list_spaces(user: User = Depends(current_user)) -> list[Space]:
    return spaces_service.list_all()


@router.post("/spaces", response_model=Space, status_code=201)
def create_space(body: SpaceCreateRequest, user: User = Depends(current_user)) -> Space:
    return spaces_service.create(user.id, body.name)


@router.get("/spaces/current", response_model=CurrentSpace)
def get_current_space(user: User = Depends(current_user)) -> CurrentSpace:
    return spaces_service.current(user.id)


@router.put("/spaces/current", response_model=CurrentSpace)
def select_space(body: SpaceSelection, user: User = Depends(current_user)) -> CurrentSpace:
    return spaces_service.select(user.id, body.space_id)


@router.get("/profile", response_model=ProfileView)
def get_profile(user: User = Depends(current_user)) -> ProfileView:
    return profile_service.get(user)


@router.put("/profile", response_model=ProfileView)
def update_profile(body: ProfileUpdate, user: User = Depends(current_user)) -> ProfileView:
    return profile_service.update_display_name(user, body.display_name)
