"""User profile and account management endpoints."""

from typing import Annotated, List

from fastapi import APIRouter, Depends, File, UploadFile

from app.core.authorization import ENDPOINT_ROLES
from app.core.dependencies import AuthContext, Users, require_roles
from app.schemas.common import Envelope
from app.schemas.user import PasswordUpdate, ProfileResponse, UserResponse

router = APIRouter()


def _gate(endpoint: str):
    check = require_roles(*ENDPOINT_ROLES[endpoint])
    check.endpoint = endpoint
    return Annotated[AuthContext, Depends(check)]


ProfileAuth = _gate("get_profile")
ProfileImageAuth = _gate("update_profile_image")
CoverImagesAuth = _gate("update_cover_images")
PasswordAuth = _gate("update_password")
FreezeAuth = _gate("freeze_account")
UnfreezeAuth = _gate("unfreeze_account")
DeleteAuth = _gate("delete_account")


async def _read_upload(upload: UploadFile) -> tuple:
    return await upload.read(), upload.content_type or "", upload.filename


def _user_data(user) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.get("/profile", response_model=Envelope)
async def get_profile(auth: ProfileAuth, users: Users):
    """Return the caller's profile with the phone number decrypted."""
    profile = ProfileResponse.model_validate(users.get_profile(auth.user))
    return Envelope(message="User fetched successfully", data={"user": profile.model_dump(mode="json")})


@router.patch("/profile-image", response_model=Envelope)
async def update_profile_image(
    auth: ProfileImageAuth,
    users: Users,
    profile_image: UploadFile = File(...),
):
    """Upload a new profile image."""
    user = await users.update_profile_image(auth.user, await _read_upload(profile_image))
    return Envelope(message="Profile image updated successfully", data={"user": _user_data(user)})


@router.patch("/cover-images", response_model=Envelope)
async def update_cover_images(
    auth: CoverImagesAuth,
    users: Users,
    cover_images: List[UploadFile] = File(...),
):
    """Replace the cover images (at most 5)."""
    uploads = [await _read_upload(upload) for upload in cover_images]
    user = await users.update_cover_images(auth.user, uploads)
    return Envelope(message="Cover images updated successfully", data={"user": _user_data(user)})


@router.patch("/password", response_model=Envelope)
async def update_password(body: PasswordUpdate, auth: PasswordAuth, users: Users):
    """Change the password; the new one may not repeat a recent password."""
    await users.update_password(auth.user, body.old_password, body.password)
    return Envelope(message="Password updated successfully")


@router.delete("/freeze", response_model=Envelope)
async def freeze_own_account(auth: FreezeAuth, users: Users):
    """Freeze the caller's own account."""
    await users.freeze_account(auth.user)
    return Envelope(message="Account frozen successfully")


@router.delete("/{user_id}/freeze", response_model=Envelope)
async def freeze_account(user_id: str, auth: FreezeAuth, users: Users):
    """Freeze another account (admins only, unless it is the caller's own)."""
    await users.freeze_account(auth.user, user_id)
    return Envelope(message="Account frozen successfully")


@router.patch("/{user_id}/unfreeze", response_model=Envelope)
async def unfreeze_account(user_id: str, auth: UnfreezeAuth, users: Users):
    """Lift a freeze (admin only)."""
    await users.unfreeze_account(auth.user, user_id)
    return Envelope(message="Account unfrozen successfully")


@router.delete("/{user_id}", response_model=Envelope)
async def delete_account(user_id: str, auth: DeleteAuth, users: Users):
    """Delete an account (admin only). Frozen accounts cannot be deleted."""
    await users.delete_account(auth.user, user_id)
    return Envelope(message="Account deleted successfully")
