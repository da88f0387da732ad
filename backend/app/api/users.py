"""User directory and profile endpoints."""

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user, get_user_directory
from app.api.serializers import serialize_public_user, serialize_user
from app.models import User
from app.schemas import Envelope, PublicUser, UserPage, UserProfileUpdate, UserRead
from app.services import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/online", response_model=Envelope[list[PublicUser]])
def list_online_users(
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[list[PublicUser]]:
    return Envelope(data=[serialize_public_user(user) for user in users.list_online()])


@router.get("/search", response_model=Envelope[list[PublicUser]])
def search_users(
    q: str = Query(..., min_length=1, max_length=64),
    limit: int = Query(20, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[list[PublicUser]]:
    """Find users by username, name or e-mail, excluding the caller."""

    matches = users.search(q, limit=limit, exclude_id=current_user.id)
    return Envelope(data=[serialize_public_user(user) for user in matches])


@router.put("/profile", response_model=Envelope[UserRead])
def update_profile(
    payload: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[UserRead]:
    user = users.update_profile(
        current_user,
        name=payload.name,
        avatar=payload.avatar,
        bio=payload.bio,
    )
    return Envelope(message="Profile updated successfully", data=serialize_user(user))


@router.delete("/profile", response_model=Envelope[None])
def delete_profile(
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[None]:
    """Soft delete the caller's account."""

    users.deactivate(current_user.id)
    return Envelope(message="Account deactivated successfully", data=None)


@router.get("", response_model=Envelope[UserPage])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[UserPage]:
    found, total = users.list_users(page=page, limit=limit)
    return Envelope(
        data=UserPage(
            users=[serialize_public_user(user) for user in found],
            page=page,
            limit=limit,
            total=total,
        )
    )


@router.get("/{user_id}", response_model=Envelope[PublicUser])
def read_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> Envelope[PublicUser]:
    return Envelope(data=serialize_public_user(users.get(user_id)))
