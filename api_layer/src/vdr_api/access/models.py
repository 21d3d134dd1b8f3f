"""
Access Models

Pydantic models for access requests and the results the workflow reports.
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import Field

from vdr_api.enums import AccessStatus
from vdr_api.enums import AccessType
from vdr_api.enums import ItemType
from vdr_api.schemas.schemas import CamelModel


class AccessRequest(CamelModel):
    """Access request database model."""

    id: UUID
    user_email: str
    item_id: UUID
    item_type: ItemType
    item_name: str
    access_types: List[AccessType]
    status: AccessStatus
    requested_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None


class AccessCheck(CamelModel):
    """Effective access of one user on one item."""

    has_access: bool
    access_types: List[AccessType] = Field(default_factory=list)


class ItemUser(CamelModel):
    """A user who can reach an item, either as admin or through approved requests."""

    email: str
    name: Optional[str] = None
    access_types: List[AccessType]
    is_admin: bool = False


class RevokeResult(CamelModel):
    """Outcome of removing one access type from a request."""

    request_id: UUID
    revoked: AccessType
    remaining: List[AccessType]
    deleted: bool
