####################################
# --- Request/response schemas --- #
####################################

import re
from datetime import date
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from vdr_api.enums import ItemType
from vdr_api.enums import PlanType
from vdr_api.enums import UserRole

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class CamelModel(BaseModel):
    """Serializes with camelCase aliases and accepts either form on input."""

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True, from_attributes=True)


def _validate_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


# ── Access ───────────────────────────────────────────────────────────────────


class AccessRequestBody(CamelModel):
    """Body for POST /access/request."""

    item_id: UUID
    item_type: ItemType
    item_name: str = Field(..., min_length=1)
    access_types: List[str]


class AccessRequestCreatedResponse(CamelModel):
    message: str
    request_id: UUID


class AccessUpdateBody(CamelModel):
    """
    Body for PUT /access/requests/{id}.

    Either ``{"status": "approved"|"rejected"}`` to decide a request or
    ``{"action": "revoke", "accessType": "..."}`` to remove one access type.
    """

    status: Optional[str] = None
    action: Optional[str] = None
    access_type: Optional[str] = None


# ── Files and folders ────────────────────────────────────────────────────────


class FolderBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        """Reject names that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Folder name is required")
        return v


class CommentBody(BaseModel):
    comment: str = Field(..., min_length=1)


class FavoriteBody(CamelModel):
    item_id: UUID
    item_type: ItemType


# ── Groups ───────────────────────────────────────────────────────────────────


class GroupBody(CamelModel):
    """Body for POST /groups."""

    group_name: str = Field(..., min_length=1)
    users: List[str] = Field(default_factory=list)

    @field_validator("users")
    @classmethod
    def normalize_members(cls, v):
        """Lower-case member emails and drop duplicates."""
        members: List[str] = []
        for email in v:
            email = email.strip().lower()
            if email and email not in members:
                members.append(email)
        return members


# ── Settings ─────────────────────────────────────────────────────────────────


class ProfileBody(CamelModel):
    company_name: str = ""
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    contact_no: str = ""
    expiry_date: Optional[date] = None


class PasswordChangeBody(CamelModel):
    current_password: str
    new_password: str
    confirm_password: str


class ChangeEmailBody(CamelModel):
    new_email: str
    password: str

    @field_validator("new_email")
    @classmethod
    def validate_new_email(cls, v):
        return _validate_email(v)


class TagBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = None


class TagUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = None


# ── Storage ──────────────────────────────────────────────────────────────────


class StorageAddFileBody(CamelModel):
    file_id: UUID


class StorageAddFolderBody(CamelModel):
    folder_id: UUID


# ── Auth and users ───────────────────────────────────────────────────────────


class EmailBody(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class OtpVerifyBody(EmailBody):
    otp: str = Field(..., min_length=1)


class RegisterBody(EmailBody):
    name: str = Field(..., min_length=1)
    password: str
    role: UserRole = UserRole.USER


class ResetPasswordBody(CamelModel):
    email: str
    token: str
    new_password: str
    confirm_password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class UserUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    role: Optional[UserRole] = None


class LoginBody(BaseModel):
    email: str
    password: str


# ── Organizations and super admin ────────────────────────────────────────────


class OrgRegisterBody(CamelModel):
    organization_name: str = Field(..., min_length=1)
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class CreateOrderBody(CamelModel):
    """Plan purchase; ``amount`` is in rupees."""

    organization_id: UUID
    plan_type: PlanType
    amount: float = Field(..., gt=0)


class VerifyPaymentBody(CamelModel):
    organization_id: UUID
    order_id: str
    payment_id: str
    signature: str


class RefundBody(BaseModel):
    """Optional partial refund amount in paise."""

    amount: Optional[int] = Field(None, gt=0)
