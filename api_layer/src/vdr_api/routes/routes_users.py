from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_user import UserRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_user_repository
from vdr_api.dependencies import require_admin
from vdr_api.enums import UserRole
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.schemas.schemas import UserUpdateBody

ROUTER_USERS = APIRouter(tags=["Users"], prefix="/users")


@ROUTER_USERS.get("/me")
async def current_user(
    user: Principal = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    """The caller's account (without the password hash)."""
    record = await users.get_by_email(user.email)
    if record is None:
        raise NotFoundError("User not found")
    return {key: value for key, value in record.items() if key != "password_hash"}


@ROUTER_USERS.get("")
async def list_users(
    role: Optional[UserRole] = Query(None),
    admin: Principal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    return await users.list(role.value if role else None)


@ROUTER_USERS.put("/{email}")
async def update_user(
    email: str,
    body: UserUpdateBody,
    admin: Principal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Change a user's name and/or role."""
    if body.name is None and body.role is None:
        raise InputValidationError("Nothing to update")
    if not await users.update(email, name=body.name, role=body.role.value if body.role else None):
        raise NotFoundError("User not found")

    logger.info("User updated", email=email, updated_by=admin.email, role=body.role.value if body.role else None)
    activity.record(
        admin,
        "update_user",
        f"Updated user {email}",
        resource_id=email,
        resource_type="user",
        meta=body.model_dump(mode="json", exclude_none=True),
    )
    return {"message": "User updated successfully"}


@ROUTER_USERS.delete("/{email}")
async def delete_user(
    email: str,
    admin: Principal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    if email == admin.email:
        raise InputValidationError("You cannot delete your own account")
    if not await users.delete(email):
        raise NotFoundError("User not found")

    logger.info("User deleted", email=email, deleted_by=admin.email)
    activity.record(admin, "delete_user", f"Deleted user {email}", resource_id=email, resource_type="user")
    return {"message": "User deleted successfully"}
