"""FastAPI dependencies for accessing app state, repositories and the authenticated caller."""

from typing import Optional

from fastapi import Depends
from fastapi import Header
from fastapi import Request

from vdr_api.access.workflow import AccessWorkflow
from vdr_api.auth.tokens import Principal
from vdr_api.auth.tokens import TokenService
from vdr_api.background import BackgroundSpawner
from vdr_api.billing.razorpay_client import RazorpayClient
from vdr_api.db.repository_access import AccessRequestRepository
from vdr_api.db.repository_activity import ActivityRepository
from vdr_api.db.repository_favorite import FavoriteRepository
from vdr_api.db.repository_file import FileRepository
from vdr_api.db.repository_group import GroupRepository
from vdr_api.db.repository_notification import NotificationRepository
from vdr_api.db.repository_one_time_code import OneTimeCodeRepository
from vdr_api.db.repository_org import OrganizationRepository
from vdr_api.db.repository_profile import ProfileRepository
from vdr_api.db.repository_report import ReportRepository
from vdr_api.db.repository_storage import StorageRepository
from vdr_api.db.repository_tag import TagRepository
from vdr_api.db.repository_trash import TrashRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.db.warehouse import Warehouse
from vdr_api.enums import TokenType
from vdr_api.errors import AuthError
from vdr_api.errors import ForbiddenError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.notify.mailer import Mailer
from vdr_api.notify.notifier import Notifier
from vdr_api.settings import Settings
from vdr_api.storage.blob_store import BlobStore


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_warehouse(request: Request) -> Warehouse:
    """
    Get the persistence gateway from request state.

    The warehouse owns the single shared database connection; repositories are
    cheap per-request views over it.
    """
    return request.app.state.warehouse


def get_background(request: Request) -> BackgroundSpawner:
    return request.app.state.background


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_razorpay(request: Request) -> RazorpayClient:
    return request.app.state.razorpay


# ── Repositories ─────────────────────────────────────────────────────────────


def get_user_repository(warehouse: Warehouse = Depends(get_warehouse)) -> UserRepository:
    return UserRepository(warehouse)


def get_access_repository(warehouse: Warehouse = Depends(get_warehouse)) -> AccessRequestRepository:
    return AccessRequestRepository(warehouse)


def get_file_repository(warehouse: Warehouse = Depends(get_warehouse)) -> FileRepository:
    return FileRepository(warehouse)


def get_trash_repository(warehouse: Warehouse = Depends(get_warehouse)) -> TrashRepository:
    return TrashRepository(warehouse)


def get_favorite_repository(warehouse: Warehouse = Depends(get_warehouse)) -> FavoriteRepository:
    return FavoriteRepository(warehouse)


def get_notification_repository(warehouse: Warehouse = Depends(get_warehouse)) -> NotificationRepository:
    return NotificationRepository(warehouse)


def get_group_repository(warehouse: Warehouse = Depends(get_warehouse)) -> GroupRepository:
    return GroupRepository(warehouse)


def get_activity_repository(warehouse: Warehouse = Depends(get_warehouse)) -> ActivityRepository:
    return ActivityRepository(warehouse)


def get_tag_repository(warehouse: Warehouse = Depends(get_warehouse)) -> TagRepository:
    return TagRepository(warehouse)


def get_profile_repository(warehouse: Warehouse = Depends(get_warehouse)) -> ProfileRepository:
    return ProfileRepository(warehouse)


def get_storage_repository(
    warehouse: Warehouse = Depends(get_warehouse),
    settings: Settings = Depends(get_settings),
) -> StorageRepository:
    return StorageRepository(warehouse, default_quota_mb=settings.default_storage_quota_mb)


def get_report_repository(warehouse: Warehouse = Depends(get_warehouse)) -> ReportRepository:
    return ReportRepository(warehouse)


def get_org_repository(warehouse: Warehouse = Depends(get_warehouse)) -> OrganizationRepository:
    return OrganizationRepository(warehouse)


def get_one_time_code_repository(warehouse: Warehouse = Depends(get_warehouse)) -> OneTimeCodeRepository:
    return OneTimeCodeRepository(warehouse)


# ── Services ─────────────────────────────────────────────────────────────────


def get_activity_logger(
    repository: ActivityRepository = Depends(get_activity_repository),
    background: BackgroundSpawner = Depends(get_background),
) -> ActivityLogger:
    return ActivityLogger(repository, background)


def get_notifier(
    notifications: NotificationRepository = Depends(get_notification_repository),
    users: UserRepository = Depends(get_user_repository),
    mailer: Mailer = Depends(get_mailer),
) -> Notifier:
    return Notifier(notifications, users, mailer)


def get_access_workflow(
    requests: AccessRequestRepository = Depends(get_access_repository),
    users: UserRepository = Depends(get_user_repository),
    notifier: Notifier = Depends(get_notifier),
    activity: ActivityLogger = Depends(get_activity_logger),
    background: BackgroundSpawner = Depends(get_background),
) -> AccessWorkflow:
    return AccessWorkflow(requests, users, notifier, activity, background)


# ── Authentication ───────────────────────────────────────────────────────────


async def get_principal(
    authorization: Optional[str] = Header(
        None,
        description="<small>*Bearer token issued by /auth/verify-otp, /org/login or /superadmin/login*</small>",
    ),
    tokens: TokenService = Depends(get_token_service),
) -> Principal:
    """
    Decode the bearer token of any principal type.

    Raises
    ------
    AuthError
        401 if the header is missing or the token has expired
    ForbiddenError
        403 if the token is invalid
    """
    if not authorization or not authorization.strip():
        raise AuthError("Unauthorized: token missing")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Unauthorized: token missing")

    return tokens.decode(token.strip())


async def get_current_user(principal: Principal = Depends(get_principal)) -> Principal:
    """Data room user (``type=user``) making the request."""
    if principal.type != TokenType.USER:
        raise ForbiddenError("Invalid token")
    return principal


async def require_admin(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_admin:
        raise ForbiddenError("Admin only")
    return user


async def get_current_org(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.type != TokenType.ORGANIZATION or not principal.org_id:
        raise ForbiddenError("Invalid token type. Organization token required.")
    return principal


async def require_superadmin(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.type != TokenType.SUPERADMIN:
        raise ForbiddenError("Super admin only")
    return principal
