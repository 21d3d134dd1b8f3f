from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_group import GroupRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_background
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_group_repository
from vdr_api.dependencies import get_notifier
from vdr_api.dependencies import require_admin
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.notify.notifier import Notifier
from vdr_api.schemas.schemas import GroupBody

ROUTER_GROUPS = APIRouter(tags=["Groups"], prefix="/groups")


@ROUTER_GROUPS.get("")
async def list_groups(
    user: Principal = Depends(get_current_user),
    groups: GroupRepository = Depends(get_group_repository),
):
    return await groups.list()


@ROUTER_GROUPS.post("", status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupBody,
    admin: Principal = Depends(require_admin),
    groups: GroupRepository = Depends(get_group_repository),
    notifier: Notifier = Depends(get_notifier),
    background: BackgroundSpawner = Depends(get_background),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Create a group; every member gets an in-app notification and an email."""
    if not body.users:
        raise InputValidationError("At least one member email is required")

    group = await groups.create(body.group_name, body.users, admin.email)
    logger.info("Group created", group_id=str(group["id"]), name=body.group_name, members=len(body.users))

    added_by = f" by {admin.name}" if admin.name else ""
    background.spawn(
        notifier.notify_many(
            body.users,
            f"Added to Group: {body.group_name}",
            f"You have been added to group {body.group_name}{added_by}.",
        ),
        name="notify-group-members",
    )
    activity.record(
        admin,
        "create_group",
        f'Created group "{body.group_name}" with {len(body.users)} member(s)',
        resource_id=group["id"],
        resource_type="group",
        meta={"members": body.users},
    )
    return {"message": "Group created successfully. Users will be notified (in-app).", "group": group}


@ROUTER_GROUPS.delete("/{group_id}")
async def delete_group(
    group_id: UUID,
    admin: Principal = Depends(require_admin),
    groups: GroupRepository = Depends(get_group_repository),
    notifier: Notifier = Depends(get_notifier),
    background: BackgroundSpawner = Depends(get_background),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Delete a group and tell its former members."""
    group = await groups.delete(group_id)
    if group is None:
        raise NotFoundError("Group not found")

    name = group["name"]
    background.spawn(
        notifier.notify_many(group["members"], f"Removed from Group: {name}", f"You have been removed from group {name}."),
        name="notify-group-removed",
    )
    activity.record(admin, "delete_group", f'Deleted group "{name}"', resource_id=group_id, resource_type="group")
    return {"message": "Group deleted successfully"}
