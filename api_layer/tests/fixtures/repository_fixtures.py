"""Fixtures replacing repositories and external clients through FastAPI dependency overrides."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest


def _provide(value):
    def _override():
        return value

    return _override


@pytest.fixture
def repos(app):
    """
    Spec'd mocks for every repository, installed as dependency overrides.

    Async repository methods become ``AsyncMock``s, so tests only set return values.
    """
    from vdr_api import dependencies
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

    providers = {
        "users": (dependencies.get_user_repository, UserRepository),
        "access": (dependencies.get_access_repository, AccessRequestRepository),
        "files": (dependencies.get_file_repository, FileRepository),
        "trash": (dependencies.get_trash_repository, TrashRepository),
        "favorites": (dependencies.get_favorite_repository, FavoriteRepository),
        "notifications": (dependencies.get_notification_repository, NotificationRepository),
        "groups": (dependencies.get_group_repository, GroupRepository),
        "activity": (dependencies.get_activity_repository, ActivityRepository),
        "tags": (dependencies.get_tag_repository, TagRepository),
        "profiles": (dependencies.get_profile_repository, ProfileRepository),
        "storage": (dependencies.get_storage_repository, StorageRepository),
        "reports": (dependencies.get_report_repository, ReportRepository),
        "orgs": (dependencies.get_org_repository, OrganizationRepository),
        "codes": (dependencies.get_one_time_code_repository, OneTimeCodeRepository),
    }

    mocks = {}
    for name, (provider, repository_class) in providers.items():
        mock = MagicMock(spec=repository_class)
        mocks[name] = mock
        app.dependency_overrides[provider] = _provide(mock)

    # Admin lookups feed background notifications; keep them empty unless a test cares
    mocks["users"].list_admins.return_value = []
    return SimpleNamespace(**mocks)


@pytest.fixture
def mock_razorpay(app):
    """Gateway client with canned responses; signature checks use the real key secret."""
    from vdr_api.billing.razorpay_client import RazorpayClient
    from vdr_api.dependencies import get_razorpay

    client = MagicMock(spec=RazorpayClient)
    client.key_id = "rzp_test_key"
    client.key_secret = "rzp_test_secret"
    client.create_order = AsyncMock(return_value={"id": "order_123", "amount": 49900, "currency": "INR"})
    client.list_payments = AsyncMock(return_value={"entity": "collection", "count": 0, "items": []})
    client.get_payment = AsyncMock(return_value={"id": "pay_123", "status": "refunded"})
    client.refund = AsyncMock(return_value={"id": "rfnd_123", "amount": 49900})
    app.dependency_overrides[get_razorpay] = lambda: client
    return client


@pytest.fixture
def mock_blob_store(app):
    from vdr_api.dependencies import get_blob_store
    from vdr_api.storage.blob_store import BlobStore

    store = MagicMock(spec=BlobStore)
    store.upload = AsyncMock(return_value="https://blobs.example.com/dataroom/key")
    store.delete = AsyncMock(return_value=True)
    store.signed_url = MagicMock(return_value="https://blobs.example.com/dataroom/key?sig=abc")
    store.signed_url_ttl_seconds = 3600

    async def _chunks():
        yield b"%PDF-1.7 "
        yield b"body"

    store.download = AsyncMock(side_effect=lambda blob_key: _chunks())
    app.dependency_overrides[get_blob_store] = lambda: store
    return store
