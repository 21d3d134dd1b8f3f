"""
Storage Routes

Personal storage: quota summary and the files and folders a user has saved.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_file import FileRepository
from vdr_api.db.repository_storage import BYTES_PER_MB
from vdr_api.db.repository_storage import StorageRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_file_repository
from vdr_api.dependencies import get_storage_repository
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.schemas.schemas import StorageAddFileBody
from vdr_api.schemas.schemas import StorageAddFolderBody

ROUTER_STORAGE = APIRouter(tags=["Storage"], prefix="/storage")


@ROUTER_STORAGE.get("")
async def get_storage(
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    storage: StorageRepository = Depends(get_storage_repository),
):
    """
    Quota summary for the caller.

    ``usedMb`` is the size of everything the caller has uploaded to the data room;
    ``savedMb`` is what their personal storage entries count against the quota.
    """
    account = await storage.get_account(user.email)
    used_mb = await files.total_uploaded_bytes(user.email) / BYTES_PER_MB
    quota_mb = account["quota_mb"]
    return {
        "userEmail": user.email,
        "totalQuotaMb": quota_mb,
        "usedMb": round(used_mb, 2),
        "percentUsed": round(used_mb / quota_mb * 100, 2) if quota_mb else 0,
        "savedMb": account["used_mb"],
    }


@ROUTER_STORAGE.get("/files")
async def list_storage_files(
    user: Principal = Depends(get_current_user),
    storage: StorageRepository = Depends(get_storage_repository),
):
    return await storage.list_entries(user.email)


@ROUTER_STORAGE.post("/add", status_code=status.HTTP_201_CREATED)
async def add_file_to_storage(
    body: StorageAddFileBody,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    storage: StorageRepository = Depends(get_storage_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Save a file into personal storage (402 when it does not fit)."""
    file = await files.get_file(body.file_id)
    if file is None:
        raise NotFoundError("File not found")

    entry = await storage.add_file(user.email, file)
    logger.info("File saved to storage", email=user.email, file_id=str(file["id"]), size_mb=entry["size_mb"])
    activity.record(
        user,
        "add_to_storage",
        f"Saved file {file['name']} to storage",
        resource_id=str(file["id"]),
        resource_type="file",
        meta={"size_mb": entry["size_mb"]},
    )
    return {"message": "File added to storage", "entry": entry}


@ROUTER_STORAGE.post("/add-folder", status_code=status.HTTP_201_CREATED)
async def add_folder_to_storage(
    body: StorageAddFolderBody,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    storage: StorageRepository = Depends(get_storage_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    folder = await files.get_folder(body.folder_id)
    if folder is None:
        raise NotFoundError("Folder not found")

    folder_files = await files.list_folder_files(body.folder_id)
    entry = await storage.add_folder(user.email, folder, folder_files)
    logger.info(
        "Folder saved to storage",
        email=user.email,
        folder_id=str(folder["id"]),
        file_count=entry["file_count"],
        size_mb=entry["total_size_mb"],
    )
    activity.record(
        user,
        "add_folder_to_storage",
        f"Saved folder {folder['name']} to storage",
        resource_id=str(folder["id"]),
        resource_type="folder",
        meta={"file_count": entry["file_count"], "size_mb": entry["total_size_mb"]},
    )
    return {"message": "Folder added to storage", "entry": entry}


@ROUTER_STORAGE.delete("/{ref}")
async def remove_from_storage(
    ref: str,
    user: Principal = Depends(get_current_user),
    storage: StorageRepository = Depends(get_storage_repository),
):
    freed = await storage.remove(user.email, ref)
    if freed is None:
        raise NotFoundError("Storage item not found")
    logger.info("Removed from storage", email=user.email, ref=ref, freed_mb=freed)
    return {"message": "Removed from storage", "freedMb": freed}
