"""Tests for background side effects, the activity sink and log redaction."""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_activity import ActivityRepository
from vdr_api.errors import PersistenceError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.monitoring.request_context import RequestContextMiddleware
from vdr_api.monitoring.request_context import redact


class TestBackgroundSpawner:
    """Tests for fire-and-forget tasks."""

    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks(self):
        spawner = BackgroundSpawner()
        done = []

        async def side_effect():
            await asyncio.sleep(0)
            done.append(True)

        spawner.spawn(side_effect())
        assert spawner.pending == 1

        await spawner.drain()

        assert done == [True]
        assert spawner.pending == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_propagate(self):
        spawner = BackgroundSpawner()

        async def failing():
            raise RuntimeError("smtp down")

        task = spawner.spawn(failing(), name="email")
        await spawner.drain()

        assert task.done()
        assert isinstance(task.exception(), RuntimeError)

    @pytest.mark.asyncio
    async def test_drain_timeout_leaves_slow_tasks(self):
        spawner = BackgroundSpawner()
        release = asyncio.Event()

        spawner.spawn(release.wait())
        await spawner.drain(timeout=0.01)

        assert spawner.pending == 1
        release.set()
        await spawner.drain()


class TestActivityLogger:
    """Tests for the audit trail sink."""

    @pytest.mark.asyncio
    async def test_log_appends_row(self):
        repository = MagicMock(spec=ActivityRepository)
        actor = SimpleNamespace(email="a@example.com", name="Ann", role="admin")

        await ActivityLogger(repository).log(actor, "access_approved", "Approved", resource_id=42, resource_type="file")

        kwargs = repository.append.await_args.kwargs
        assert kwargs["user_email"] == "a@example.com"
        assert kwargs["resource_id"] == "42"
        assert kwargs["resource_type"] == "file"

    @pytest.mark.asyncio
    async def test_safe_log_swallows_failures(self):
        repository = MagicMock(spec=ActivityRepository)
        repository.append.side_effect = PersistenceError("warehouse down")

        await ActivityLogger(repository).safe_log(None, "login", "Logged in")

        repository.append.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_record_runs_in_background(self):
        repository = MagicMock(spec=ActivityRepository)
        spawner = BackgroundSpawner()

        ActivityLogger(repository, spawner).record(None, "login", "Logged in")
        await spawner.drain()

        repository.append.assert_awaited_once()

    def test_record_without_spawner(self):
        with pytest.raises(RuntimeError):
            ActivityLogger(MagicMock(spec=ActivityRepository)).record(None, "login", "Logged in")


class TestRedaction:
    """Tests for keeping credentials out of request logs."""

    def test_redact_nested_keys(self):
        body = {"email": "a@example.com", "password": "pw", "nested": [{"otp": "123456", "name": "x"}]}

        assert redact(body) == {
            "email": "a@example.com",
            "password": "***redacted***",
            "nested": [{"otp": "***redacted***", "name": "x"}],
        }

    def test_sensitive_response_detected(self):
        middleware = RequestContextMiddleware(app=MagicMock())

        assert middleware._contains_sensitive_information({"token": "abc"})
        assert middleware._contains_sensitive_information({"value": "eyJhbGciOi.eyJzdWIiOi.c2lnbmF0dXJl"})
        assert not middleware._contains_sensitive_information({"message": "ok"})
