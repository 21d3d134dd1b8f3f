"""
Report Routes

File usage and sharing reports.
"""

from collections import Counter
from collections import defaultdict
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_file import FileRepository
from vdr_api.db.repository_report import ReportRepository
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_file_repository
from vdr_api.dependencies import get_report_repository
from vdr_api.errors import NotFoundError

ROUTER_REPORTS = APIRouter(tags=["Reports"], prefix="/reports")


@ROUTER_REPORTS.get("/files")
async def files_report(
    user: Principal = Depends(get_current_user),
    reports: ReportRepository = Depends(get_report_repository),
):
    return await reports.files()


@ROUTER_REPORTS.get("/file-shares")
async def file_share_report(
    user: Principal = Depends(get_current_user),
    reports: ReportRepository = Depends(get_report_repository),
):
    """Shared files, each with the approved requests behind it under ``shares``."""
    shares_by_file = defaultdict(list)
    for share in await reports.approved_file_shares():
        shares_by_file[share["item_id"]].append(share)

    shared = await reports.shared_files()
    return [{**file, "shares": shares_by_file.get(file["id"], [])} for file in shared]


@ROUTER_REPORTS.get("/files/{file_id}/activity")
async def file_activity(
    file_id: UUID,
    user: Principal = Depends(get_current_user),
    files: FileRepository = Depends(get_file_repository),
    reports: ReportRepository = Depends(get_report_repository),
):
    file = await files.get_file(file_id)
    if file is None:
        raise NotFoundError("File not found")

    share_activity = await reports.file_share_activity(file_id)
    type_counts = Counter(access_type for share in share_activity for access_type in share["access_types"] or [])
    return {
        "file": file,
        "shareActivity": share_activity,
        "sharesCount": len({share["requested_by"] for share in share_activity}),
        "accessTypeCounts": dict(type_counts),
        "viewsCount": file["views_count"] or 0,
        "downloadsCount": file["downloads_count"] or 0,
    }
