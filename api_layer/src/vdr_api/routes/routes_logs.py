from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_activity import ActivityRepository
from vdr_api.dependencies import get_activity_repository
from vdr_api.dependencies import require_admin

ROUTER_LOGS = APIRouter(tags=["Activity Logs"], prefix="/logs")

MAX_PAGE_SIZE = 500


@ROUTER_LOGS.get("")
async def search_logs(
    user: Optional[str] = Query(None, description="<small>*Exact user email*</small>"),
    q: Optional[str] = Query(None, description="<small>*Substring of description, action or resource*</small>"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1),
    limit: int = Query(100),
    admin: Principal = Depends(require_admin),
    activity: ActivityRepository = Depends(get_activity_repository),
):
    """
    Search the activity trail, newest first.

    ``limit`` is clamped to 1..500 and ``page`` to at least 1.
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    rows, total = await activity.search(
        user=user or None,
        query=q or None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return {"data": rows, "meta": {"page": page, "limit": limit, "count": len(rows), "total": total}}
