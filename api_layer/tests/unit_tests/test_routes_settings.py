"""Test suite for settings, user administration, groups and activity log endpoints."""

from datetime import date
from uuid import uuid4

import pytest
from fastapi import status

from tests.consts import API_BASE
from vdr_api.auth.passwords import hash_password
from vdr_api.auth.passwords import verify_password


@pytest.fixture
def account():
    return {
        "id": str(uuid4()),
        "name": "Test User",
        "email": "user@example.com",
        "role": "user",
        "password_hash": hash_password("current-pass"),
    }


class TestProfileEndpoints:
    def test_profile_falls_back_to_account_name(self, client, repos, account):
        repos.users.get_by_email.return_value = account
        repos.profiles.get.return_value = None

        response = client.get(f"{API_BASE}/settings/profile")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["firstName"] == "Test"
        assert data["lastName"] == "User"
        assert data["availableSpaceMB"] == 2048

    def test_update_profile(self, client, repos):
        response = client.put(
            f"{API_BASE}/settings/profile",
            json={"companyName": "Acme", "firstName": " Ann ", "lastName": "Lee", "expiryDate": "2027-01-31"},
        )

        assert response.status_code == status.HTTP_200_OK
        kwargs = repos.profiles.upsert.await_args.kwargs
        assert kwargs["first_name"] == "Ann"
        assert kwargs["expiry_date"] == date(2027, 1, 31)
        repos.users.update.assert_awaited_once_with("user@example.com", name="Ann Lee")

    def test_upload_logo(self, client, repos, mock_blob_store):
        response = client.post(
            f"{API_BASE}/settings/profile/logo", files={"logo": ("logo.png", b"\x89PNG", "image/png")}
        )

        assert response.status_code == status.HTTP_200_OK
        blob_key = mock_blob_store.upload.await_args.args[0]
        assert blob_key.startswith("logos/user@example.com/")
        assert blob_key.endswith("_logo.png")
        repos.profiles.set_logo.assert_awaited_once_with("user@example.com", "https://blobs.example.com/dataroom/key")


class TestPasswordAndEmailChange:
    """Tests for changing credentials from settings."""

    def test_change_password(self, client, repos, account):
        repos.users.get_by_email.return_value = account

        response = client.post(
            f"{API_BASE}/settings/reset-password",
            json={"currentPassword": "current-pass", "newPassword": "brand-new", "confirmPassword": "brand-new"},
        )

        assert response.status_code == status.HTTP_200_OK
        email, new_hash = repos.users.update_password.await_args.args
        assert email == "user@example.com"
        assert verify_password("brand-new", new_hash)

    def test_wrong_current_password(self, client, repos, account):
        repos.users.get_by_email.return_value = account

        response = client.post(
            f"{API_BASE}/settings/reset-password",
            json={"currentPassword": "guess", "newPassword": "brand-new", "confirmPassword": "brand-new"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Current password is incorrect"
        repos.users.update_password.assert_not_called()

    def test_change_email(self, client, repos, account):
        repos.users.get_by_email.return_value = account
        repos.users.exists.return_value = False

        response = client.post(
            f"{API_BASE}/settings/change-email", json={"newEmail": "New@Example.com", "password": "current-pass"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["newEmail"] == "new@example.com"
        repos.users.change_email.assert_awaited_once_with("user@example.com", "new@example.com")

    def test_change_email_taken(self, client, repos, account):
        repos.users.get_by_email.return_value = account
        repos.users.exists.return_value = True

        response = client.post(
            f"{API_BASE}/settings/change-email", json={"newEmail": "taken@example.com", "password": "current-pass"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        repos.users.change_email.assert_not_called()


class TestTagEndpoints:
    def test_create_tag(self, client, repos):
        tag = {"id": str(uuid4()), "name": "Legal", "color": "#ff0000"}
        repos.tags.create.return_value = tag

        response = client.post(f"{API_BASE}/settings/tags", json={"name": " Legal ", "color": "#ff0000"})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["name"] == "Legal"
        repos.tags.create.assert_awaited_once_with("Legal", "#ff0000", "user@example.com")

    def test_update_tag_without_fields(self, client, repos):
        response = client.put(f"{API_BASE}/settings/tags/{uuid4()}", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_missing_tag(self, client, repos):
        repos.tags.delete.return_value = False

        response = client.delete(f"{API_BASE}/settings/tags/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Tag not found"


class TestUserEndpoints:
    """Tests for /users."""

    def test_me_hides_password_hash(self, client, repos, account):
        repos.users.get_by_email.return_value = account

        response = client.get(f"{API_BASE}/users/me")

        assert response.status_code == status.HTTP_200_OK
        assert "password_hash" not in response.json()

    def test_list_requires_admin(self, client, repos):
        response = client.get(f"{API_BASE}/users")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "Admin only"

    def test_list_by_role(self, admin_client, repos):
        repos.users.list.return_value = []

        response = admin_client.get(f"{API_BASE}/users", params={"role": "admin"})

        assert response.status_code == status.HTTP_200_OK
        repos.users.list.assert_awaited_once_with("admin")

    def test_update_role(self, admin_client, repos):
        repos.users.update.return_value = True

        response = admin_client.put(f"{API_BASE}/users/user@example.com", json={"role": "admin"})

        assert response.status_code == status.HTTP_200_OK
        repos.users.update.assert_awaited_once_with("user@example.com", name=None, role="admin")

    def test_update_nothing(self, admin_client, repos):
        response = admin_client.put(f"{API_BASE}/users/user@example.com", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cannot_delete_self(self, admin_client, repos):
        response = admin_client.delete(f"{API_BASE}/users/admin@example.com")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        repos.users.delete.assert_not_called()


class TestGroupEndpoints:
    def test_create_group_normalizes_members(self, admin_client, repos):
        repos.groups.create.return_value = {"id": str(uuid4()), "name": "Bidders"}

        response = admin_client.post(
            f"{API_BASE}/groups",
            json={"groupName": "Bidders", "users": ["A@Example.com", "a@example.com ", "b@example.com"]},
        )

        assert response.status_code == status.HTTP_201_CREATED
        repos.groups.create.assert_awaited_once_with("Bidders", ["a@example.com", "b@example.com"], "admin@example.com")

    def test_create_group_without_members(self, admin_client, repos):
        response = admin_client.post(f"{API_BASE}/groups", json={"groupName": "Bidders", "users": []})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        repos.groups.create.assert_not_called()

    def test_delete_missing_group(self, admin_client, repos):
        repos.groups.delete.return_value = None

        response = admin_client.delete(f"{API_BASE}/groups/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestActivityLogEndpoints:
    def test_search_clamps_paging(self, admin_client, repos):
        repos.activity.search.return_value = ([], 0)

        response = admin_client.get(f"{API_BASE}/logs", params={"page": 0, "limit": 5000, "q": "deck"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["meta"] == {"page": 1, "limit": 500, "count": 0, "total": 0}
        kwargs = repos.activity.search.await_args.kwargs
        assert kwargs["query"] == "deck"
        assert kwargs["offset"] == 0

    def test_search_requires_admin(self, client, repos):
        response = client.get(f"{API_BASE}/logs")

        assert response.status_code == status.HTTP_403_FORBIDDEN
