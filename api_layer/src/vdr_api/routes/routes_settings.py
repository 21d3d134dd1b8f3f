"""
Settings Routes

Profile details and logo, password and email changes, and the workspace tag list.
"""

import time
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import UploadFile
from fastapi import status
from loguru import logger

from vdr_api.auth.passwords import check_new_password
from vdr_api.auth.passwords import hash_password
from vdr_api.auth.passwords import verify_password
from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_profile import ProfileRepository
from vdr_api.db.repository_tag import TagRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_blob_store
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_profile_repository
from vdr_api.dependencies import get_tag_repository
from vdr_api.dependencies import get_user_repository
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.schemas.schemas import ChangeEmailBody
from vdr_api.schemas.schemas import PasswordChangeBody
from vdr_api.schemas.schemas import ProfileBody
from vdr_api.schemas.schemas import TagBody
from vdr_api.schemas.schemas import TagUpdateBody
from vdr_api.storage.blob_store import BlobStore

ROUTER_SETTINGS = APIRouter(tags=["Settings"], prefix="/settings")

DEFAULT_AVAILABLE_SPACE_MB = 2048


# ── Profile ──────────────────────────────────────────────────────────────────


@ROUTER_SETTINGS.get("/profile")
async def get_profile(
    user: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
    profiles: ProfileRepository = Depends(get_profile_repository),
):
    """Profile fields; first and last name fall back to the account name."""
    account = await users.get_by_email(user.email)
    if account is None:
        raise NotFoundError("User not found")
    profile = await profiles.get(user.email) or {}

    first, _, last = (account["name"] or "").partition(" ")
    return {
        "email": account["email"],
        "companyName": profile.get("company_name") or "",
        "firstName": profile.get("first_name") or first,
        "lastName": profile.get("last_name") or last,
        "address": profile.get("address") or "",
        "contactNo": profile.get("contact_no") or "",
        "expiryDate": profile.get("expiry_date"),
        "logoUrl": profile.get("logo_url"),
        "availableSpaceMB": profile.get("available_space_mb") or DEFAULT_AVAILABLE_SPACE_MB,
        "role": account["role"],
    }


@ROUTER_SETTINGS.put("/profile")
async def update_profile(
    body: ProfileBody,
    user: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
    profiles: ProfileRepository = Depends(get_profile_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Upsert the profile; a non-empty first or last name also renames the account."""
    await profiles.upsert(
        user.email,
        company_name=body.company_name,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        address=body.address,
        contact_no=body.contact_no,
        expiry_date=body.expiry_date,
    )
    full_name = f"{body.first_name.strip()} {body.last_name.strip()}".strip()
    if full_name:
        await users.update(user.email, name=full_name)
    activity.record(user, "update_profile", "Updated profile", resource_id=user.email, resource_type="profile")
    return {"message": "Profile updated successfully"}


@ROUTER_SETTINGS.post("/profile/logo")
async def upload_logo(
    logo: UploadFile = File(...),
    user: Principal = Depends(get_current_user),
    profiles: ProfileRepository = Depends(get_profile_repository),
    blobs: BlobStore = Depends(get_blob_store),
):
    if not logo.filename:
        raise InputValidationError("No file uploaded")

    blob_key = f"logos/{user.email}/{int(time.time() * 1000)}_{logo.filename}"
    url = await blobs.upload(blob_key, await logo.read(), logo.content_type)
    await profiles.set_logo(user.email, url)
    logger.info("Profile logo uploaded", email=user.email, blob_key=blob_key)
    return {"message": "Logo uploaded successfully", "logoUrl": url}


@ROUTER_SETTINGS.post("/reset-password")
async def change_password(
    body: PasswordChangeBody,
    user: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Change the caller's password after checking the current one."""
    check_new_password(body.new_password, body.confirm_password)
    account = await users.get_by_email(user.email)
    if account is None:
        raise NotFoundError("User not found")
    if not verify_password(body.current_password, account["password_hash"]):
        raise InputValidationError("Current password is incorrect")

    await users.update_password(user.email, hash_password(body.new_password))
    activity.record(user, "change_password", "Changed password", resource_id=user.email, resource_type="user")
    return {"message": "Password updated successfully"}


@ROUTER_SETTINGS.post("/change-email")
async def change_email(
    body: ChangeEmailBody,
    user: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Move the caller's account to a new email.

    Profile, favorites, notifications, access requests and personal storage move
    with it. Existing tokens keep the old email, so the client must log in again.
    """
    account = await users.get_by_email(user.email)
    if account is None:
        raise NotFoundError("User not found")
    if not verify_password(body.password, account["password_hash"]):
        raise InputValidationError("Password is incorrect")
    if body.new_email == user.email or await users.exists(body.new_email):
        raise InputValidationError("Email already in use")

    await users.change_email(user.email, body.new_email)
    logger.info("User email changed", old_email=user.email, new_email=body.new_email)
    activity.record(
        user,
        "change_email",
        f"Changed email to {body.new_email}",
        resource_id=body.new_email,
        resource_type="user",
        meta={"old_email": user.email},
    )
    return {"message": "Email updated successfully", "newEmail": body.new_email}


# ── Tags ─────────────────────────────────────────────────────────────────────


@ROUTER_SETTINGS.get("/tags")
async def list_tags(
    user: Principal = Depends(get_current_user),
    tags: TagRepository = Depends(get_tag_repository),
):
    return await tags.list()


@ROUTER_SETTINGS.post("/tags", status_code=status.HTTP_201_CREATED)
async def create_tag(
    body: TagBody,
    user: Principal = Depends(get_current_user),
    tags: TagRepository = Depends(get_tag_repository),
):
    tag = await tags.create(body.name.strip(), body.color, user.email)
    return {"message": "Tag created successfully", **tag}


@ROUTER_SETTINGS.put("/tags/{tag_id}")
async def update_tag(
    tag_id: UUID,
    body: TagUpdateBody,
    user: Principal = Depends(get_current_user),
    tags: TagRepository = Depends(get_tag_repository),
):
    if body.name is None and body.color is None:
        raise InputValidationError("Tag name is required")
    tag = await tags.update(tag_id, body.name.strip() if body.name else None, body.color)
    if tag is None:
        raise NotFoundError("Tag not found")
    return {"message": "Tag updated successfully", **tag}


@ROUTER_SETTINGS.delete("/tags/{tag_id}")
async def delete_tag(
    tag_id: UUID,
    user: Principal = Depends(get_current_user),
    tags: TagRepository = Depends(get_tag_repository),
):
    if not await tags.delete(tag_id):
        raise NotFoundError("Tag not found")
    return {"message": "Tag deleted successfully"}
