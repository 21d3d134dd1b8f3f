"""In-memory access request store and workflow fixtures."""

from contextlib import asynccontextmanager
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from uuid import UUID
from uuid import uuid4

import pytest


class InMemoryAccessRequests:
    """Implements the AccessRequestRepository contract over a dict, plus a per-file share counter."""

    def __init__(self):
        self.rows: Dict[UUID, Dict[str, Any]] = {}
        self.share_counts: Dict[UUID, int] = {}
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self

    async def create(self, user_email: str, item_id: UUID, item_type: str, item_name: str, access_types: List[str]):
        request_id = uuid4()
        self.rows[request_id] = {
            "id": request_id,
            "user_email": user_email,
            "item_id": item_id,
            "item_type": item_type,
            "item_name": item_name,
            "access_types": list(access_types),
            "status": "pending",
            "requested_at": datetime.now(timezone.utc),
            "approved_at": None,
            "approved_by": None,
        }
        return request_id

    async def get(self, request_id: UUID) -> Optional[Dict[str, Any]]:
        row = self.rows.get(request_id)
        return dict(row) if row else None

    async def list_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        rows = sorted(self.rows.values(), key=lambda r: r["requested_at"], reverse=True)
        return [dict(r) for r in rows[:limit]]

    async def set_status(self, request_id: UUID, status: str, approver_email: str) -> bool:
        row = self.rows.get(request_id)
        if row is None or row["status"] != "pending":
            return False
        row.update(status=status, approved_by=approver_email, approved_at=datetime.now(timezone.utc))
        return True

    async def count_other_approved(self, user_email: str, item_id: UUID, item_type: str, exclude_id: UUID) -> int:
        return sum(
            1
            for r in self.rows.values()
            if r["user_email"] == user_email
            and r["item_id"] == item_id
            and r["item_type"] == item_type
            and r["status"] == "approved"
            and r["id"] != exclude_id
        )

    async def increment_share_count(self, file_id: UUID) -> None:
        self.share_counts[file_id] = self.share_counts.get(file_id, 0) + 1

    async def list_approved_for_user(self, user_email: str, item_id: UUID, item_type: str) -> List[Dict[str, Any]]:
        return [
            dict(r)
            for r in self.rows.values()
            if r["user_email"] == user_email
            and r["item_id"] == item_id
            and r["item_type"] == item_type
            and r["status"] == "approved"
        ]

    async def list_approved_for_item(self, item_id: UUID, item_type: str) -> List[Dict[str, Any]]:
        return [
            dict(r)
            for r in self.rows.values()
            if r["item_id"] == item_id and r["item_type"] == item_type and r["status"] == "approved"
        ]

    async def update_access_types(self, request_id: UUID, access_types: List[str]) -> None:
        self.rows[request_id]["access_types"] = list(access_types)

    async def delete(self, request_id: UUID) -> bool:
        return self.rows.pop(request_id, None) is not None


@pytest.fixture
def access_store():
    return InMemoryAccessRequests()


@pytest.fixture
def workflow_collaborators():
    """Mocked notifier, activity sink and user lookups for the access workflow."""
    from vdr_api.monitoring.activity import ActivityLogger
    from vdr_api.notify.notifier import Notifier

    notifier = MagicMock(spec=Notifier)
    notifier.email_admins = AsyncMock(return_value=1)
    notifier.email_user = AsyncMock(return_value=True)
    notifier.notify_user = AsyncMock(return_value=True)

    activity = MagicMock(spec=ActivityLogger)
    activity.safe_log = AsyncMock()

    users = MagicMock()
    users.list_admins = AsyncMock(return_value=[{"email": "admin@example.com", "name": "Admin"}])
    return {"notifier": notifier, "activity": activity, "users": users}


@pytest.fixture
def workflow(access_store, workflow_collaborators):
    from vdr_api.access.workflow import AccessWorkflow
    from vdr_api.background import BackgroundSpawner

    return AccessWorkflow(
        requests=access_store,
        users=workflow_collaborators["users"],
        notifier=workflow_collaborators["notifier"],
        activity=workflow_collaborators["activity"],
        background=BackgroundSpawner(),
    )


@pytest.fixture
def admin_principal():
    from vdr_api.auth.tokens import Principal

    return Principal(email="admin@example.com", role="admin", name="Admin")


@pytest.fixture
def user_principal():
    from vdr_api.auth.tokens import Principal

    return Principal(email="user@example.com", role="user", name="User")
