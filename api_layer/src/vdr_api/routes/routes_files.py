"""
File and Folder Routes

Folders, uploads, listing, comments, signed viewing and downloads. Deleting a
file or folder moves it to the trash.
"""

from typing import Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import Query
from fastapi import UploadFile
from fastapi import status
from fastapi.responses import StreamingResponse
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_file import FileRepository
from vdr_api.db.repository_trash import TrashRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_blob_store
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_file_repository
from vdr_api.dependencies import get_trash_repository
from vdr_api.dependencies import require_admin
from vdr_api.errors import ForbiddenError
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.schemas.schemas import CommentBody
from vdr_api.schemas.schemas import FolderBody
from vdr_api.storage.blob_store import BlobStore

ROUTER_FILES = APIRouter(tags=["Files"], prefix="/files")


async def _get_file_or_404(files: FileRepository, file_id: UUID) -> dict:
    file = await files.get_file(file_id)
    if file is None:
        raise NotFoundError("File not found")
    return file


def _attachment_disposition(name: str) -> str:
    """Header value with an ASCII fallback name and the UTF-8 name in RFC 5987 form."""
    fallback = "".join(c if c.isascii() and c.isprintable() and c not in "\"\\" else "_" for c in name)
    return f"attachment; filename=\"{fallback or 'download'}\"; filename*=UTF-8''{quote(name, safe='')}"


# ── Folders ──────────────────────────────────────────────────────────────────


@ROUTER_FILES.post("/folder", status_code=status.HTTP_201_CREATED)
async def create_folder(
    body: FolderBody,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Create an empty folder."""
    folder = await files.create_folder(body.name, user.email)
    logger.info("Folder created", folder_id=str(folder["id"]), name=body.name, created_by=user.email)
    activity.record(
        user, "create_folder", f'Created folder "{body.name}"', resource_id=folder["id"], resource_type="folder"
    )
    return folder


@ROUTER_FILES.get("/folders")
async def list_folders(
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
):
    """All folders with their file count and total size in bytes."""
    return await files.list_folders()


@ROUTER_FILES.get("/folders/{folder_id}")
async def open_folder(
    folder_id: UUID,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
):
    """A folder and the files inside it, newest first."""
    folder = await files.get_folder(folder_id)
    if folder is None:
        raise NotFoundError("Folder not found")
    return {**folder, "files": await files.list_folder_files(folder_id)}


@ROUTER_FILES.put(
    "/folders/{folder_id}",
    responses={
        status.HTTP_403_FORBIDDEN: {
            "description": "Caller did not create the folder",
            "content": {"application/json": {"example": {"error": "Only folder creator can rename"}}},
        },
    },
)
async def rename_folder(
    folder_id: UUID,
    body: FolderBody,
    admin: Principal = Depends(require_admin),
    files: FileRepository = Depends(get_file_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Rename a folder. Only the admin who created it may rename it."""
    folder = await files.get_folder(folder_id)
    if folder is None:
        raise NotFoundError("Folder not found")
    if folder["created_by"] != admin.email:
        raise ForbiddenError("Only folder creator can rename")

    await files.rename_folder(folder_id, body.name)
    activity.record(
        admin,
        "rename_folder",
        f'Renamed folder "{folder["name"]}" to "{body.name}"',
        resource_id=folder_id,
        resource_type="folder",
    )
    return {"message": "Folder renamed successfully", "id": folder_id, "name": body.name}


@ROUTER_FILES.delete("/folders/{folder_id}")
async def delete_folder(
    folder_id: UUID,
    admin: Principal = Depends(require_admin),
    trash: TrashRepository = Depends(get_trash_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Move a folder and all of its files to the trash."""
    moved = await trash.trash_folder(folder_id, admin.email)
    if moved is None:
        raise NotFoundError("Folder not found")

    logger.info("Folder moved to trash", folder_id=str(folder_id), files=moved, deleted_by=admin.email)
    activity.record(
        admin,
        "delete_folder",
        f"Moved folder {folder_id} and {moved} file(s) to trash",
        resource_id=folder_id,
        resource_type="folder",
        meta={"files": moved},
    )
    return {"message": "Folder and its files moved to trash", "files": moved}


# ── Files ────────────────────────────────────────────────────────────────────


@ROUTER_FILES.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(..., description="Document to upload"),
    folder_id: UUID = Form(..., alias="folderId"),
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    blobs: BlobStore = Depends(get_blob_store),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Upload a document into a folder; the blob key is ``{folderId}/{filename}``."""
    if not file.filename:
        raise InputValidationError("No file uploaded")
    if await files.get_folder(folder_id) is None:
        raise NotFoundError("Folder not found")

    content = await file.read()
    file_type = file.content_type or "application/octet-stream"
    blob_key = f"{folder_id}/{file.filename}"
    url = await blobs.upload(blob_key, content, file_type)

    record = await files.create_file(
        folder_id=folder_id,
        name=file.filename,
        blob_key=blob_key,
        file_size=len(content),
        file_type=file_type,
        uploaded_by=user.email,
    )
    logger.success("File uploaded", file_id=str(record["id"]), name=file.filename, size=len(content))
    activity.record(
        user,
        "upload_file",
        f'Uploaded "{file.filename}" to folder {folder_id}',
        resource_id=record["id"],
        resource_type="file",
        meta={"folder_id": str(folder_id), "size": len(content), "type": file_type},
    )
    return {"id": record["id"], "fileName": file.filename, "url": url, "size": len(content), "type": file_type}


@ROUTER_FILES.get("")
async def list_files(
    folder_id: Optional[UUID] = Query(None, alias="folderId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
):
    """One page of files, optionally restricted to a folder."""
    rows, total = await files.list_files(folder_id, limit=limit, offset=(page - 1) * limit)
    return {"data": rows, "meta": {"page": page, "limit": limit, "total": total}}


@ROUTER_FILES.delete("/{file_id}")
async def delete_file(
    file_id: UUID,
    user: Principal = Depends(get_current_user),
    trash: TrashRepository = Depends(get_trash_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Move a file to the trash."""
    if not await trash.trash_file(file_id, user.email):
        raise NotFoundError("File not found")

    logger.info("File moved to trash", file_id=str(file_id), deleted_by=user.email)
    activity.record(user, "delete_file", f"Moved file {file_id} to trash", resource_id=file_id, resource_type="file")
    return {"message": "File moved to trash"}


@ROUTER_FILES.post("/{file_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    file_id: UUID,
    body: CommentBody,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    await _get_file_or_404(files, file_id)
    comment = await files.add_comment(file_id, user.email, body.comment)
    activity.record(user, "add_comment", f"Commented on file {file_id}", resource_id=file_id, resource_type="file")
    return {"message": "Comment added successfully", "comment": comment}


@ROUTER_FILES.get("/{file_id}/comments")
async def list_comments(
    file_id: UUID,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
):
    return await files.list_comments(file_id)


@ROUTER_FILES.get("/{file_id}/view")
async def view_file(
    file_id: UUID,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    blobs: BlobStore = Depends(get_blob_store),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Count a view and return a short-lived read-only URL for the document."""
    file = await _get_file_or_404(files, file_id)
    url = blobs.signed_url(file["blob_key"])
    await files.increment_views(file_id)
    activity.record(user, "view_file", f'Viewed "{file["name"]}"', resource_id=file_id, resource_type="file")
    return {"url": url, "expiresIn": blobs.signed_url_ttl_seconds}


@ROUTER_FILES.get("/{file_id}/download")
async def download_file(
    file_id: UUID,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    blobs: BlobStore = Depends(get_blob_store),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Count a download and stream the document as an attachment."""
    file = await _get_file_or_404(files, file_id)
    chunks = await blobs.download(file["blob_key"])
    await files.increment_downloads(file_id)
    activity.record(user, "download_file", f'Downloaded "{file["name"]}"', resource_id=file_id, resource_type="file")
    return StreamingResponse(
        chunks,
        media_type=file["file_type"] or "application/octet-stream",
        headers={"Content-Disposition": _attachment_disposition(file["name"])},
    )
