from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_trash import TrashRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_background
from vdr_api.dependencies import get_blob_store
from vdr_api.dependencies import get_trash_repository
from vdr_api.dependencies import require_admin
from vdr_api.enums import ItemType
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.storage.blob_store import BlobStore

ROUTER_TRASH = APIRouter(tags=["Trash"], prefix="/trash")

NOT_IN_TRASH = {
    "description": "Item not found in trash",
    "content": {"application/json": {"example": {"error": "Item not found in trash"}}},
}


@ROUTER_TRASH.get("")
async def list_trash(
    admin: Principal = Depends(require_admin),
    trash: TrashRepository = Depends(get_trash_repository),
):
    """Everything in the trash, most recently deleted first."""
    return await trash.list()


@ROUTER_TRASH.post("/{item_id}/restore", responses={status.HTTP_404_NOT_FOUND: NOT_IN_TRASH})
async def restore_item(
    item_id: UUID,
    admin: Principal = Depends(require_admin),
    trash: TrashRepository = Depends(get_trash_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Put a trashed file or folder back where it was."""
    entry = await trash.get(item_id)
    if entry is None:
        raise NotFoundError("Item not found in trash")
    if entry["item_type"] not in (ItemType.FILE.value, ItemType.FOLDER.value):
        raise InputValidationError("Unsupported item type")

    await trash.restore(entry, admin.email)
    logger.info("Item restored from trash", item_id=str(item_id), item_type=entry["item_type"], restored_by=admin.email)
    activity.record(
        admin,
        "restore_item",
        f'Restored {entry["item_type"]} "{entry["item_name"]}" from trash',
        resource_id=item_id,
        resource_type=entry["item_type"],
    )
    return {"message": "Item restored"}


@ROUTER_TRASH.delete("/{item_id}", responses={status.HTTP_404_NOT_FOUND: NOT_IN_TRASH})
async def delete_permanently(
    item_id: UUID,
    admin: Principal = Depends(require_admin),
    trash: TrashRepository = Depends(get_trash_repository),
    blobs: BlobStore = Depends(get_blob_store),
    background: BackgroundSpawner = Depends(get_background),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Drop a trash entry for good; the file's blob is removed in the background."""
    entry = await trash.get(item_id)
    if entry is None:
        raise NotFoundError("Item not found in trash")

    await trash.delete(item_id)
    if entry["item_type"] == ItemType.FILE.value and entry["blob_key"]:
        background.spawn(blobs.delete(entry["blob_key"]), name="blob-delete")

    logger.info("Item permanently deleted", item_id=str(item_id), item_type=entry["item_type"], deleted_by=admin.email)
    activity.record(
        admin,
        "permanent_delete",
        f'Permanently deleted {entry["item_type"]} "{entry["item_name"]}"',
        resource_id=item_id,
        resource_type=entry["item_type"],
    )
    return {"message": "Item permanently deleted"}
