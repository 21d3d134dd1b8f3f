"""
Data Room Enums

Enum types shared by the workflow, repositories and route schemas.
Values must match exactly with database constraints.
"""

from enum import Enum


class AccessType(str, Enum):
    """Capability that can be granted on a file or folder."""

    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"
    COMMENT = "COMMENT"
    UPLOAD = "UPLOAD"


# Canonical ordering used whenever access types are reported
ALL_ACCESS_TYPES = [AccessType.VIEW, AccessType.DOWNLOAD, AccessType.COMMENT, AccessType.UPLOAD]


class AccessStatus(str, Enum):
    """Access request status. Approved and rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ItemType(str, Enum):
    """Kind of data room item a request, favorite or trash entry refers to."""

    FILE = "file"
    FOLDER = "folder"


class UserRole(str, Enum):
    """Data room user roles."""

    ADMIN = "admin"
    USER = "user"


class TokenType(str, Enum):
    """Principal kind carried in the bearer token ``type`` claim."""

    USER = "user"
    ORGANIZATION = "organization"
    SUPERADMIN = "superadmin"


class CodePurpose(str, Enum):
    """Namespaces in the one-time code store."""

    LOGIN_OTP = "login_otp"
    PASSWORD_RESET = "password_reset"


class PlanType(str, Enum):
    """Organization subscription plans."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        return {"monthly": 1, "quarterly": 3, "yearly": 12}[self.value]


class PaymentStatus(str, Enum):
    """Payment lifecycle."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"
