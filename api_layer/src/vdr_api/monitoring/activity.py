"""
Activity Log Sink

Writes the user-facing audit trail (``user_logs``). Callers use ``safe_log``,
which never raises: a failed audit write must not break the operation being
audited.
"""

from typing import Any
from typing import Optional

from loguru import logger

from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_activity import ActivityRepository
from vdr_api.monitoring.request_context import get_request_context


class ActivityLogger:
    """Appends activity rows enriched with the current request's client details."""

    def __init__(self, repository: ActivityRepository, background: Optional[BackgroundSpawner] = None):
        self.repository = repository
        self.background = background

    async def log(
        self,
        actor,
        action: str,
        description: str,
        resource_id: Optional[Any] = None,
        resource_type: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Append one activity row.

        Args:
            actor: Authenticated principal (``email``, ``name``, ``role`` attributes) or None
            action: Short machine-readable action name (e.g. ``access_approved``)
            description: Human readable summary
            resource_id: Id of the affected resource
            resource_type: Kind of the affected resource
            meta: Extra JSON details
        """
        context = get_request_context()
        await self.repository.append(
            action=action,
            user_email=getattr(actor, "email", None),
            user_name=getattr(actor, "name", None),
            role=getattr(actor, "role", None),
            description=description,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_type=resource_type,
            ip_address=context["client_ip"] or None,
            user_agent=context["user_agent"] or None,
            meta=meta,
        )

    async def safe_log(self, actor, action: str, description: str, **kwargs: Any) -> None:
        """Like ``log`` but failures are only reported to the application log."""
        try:
            await self.log(actor, action, description, **kwargs)
        except Exception as e:
            # Audit failures should not break main operation
            logger.error(f"Failed to write activity log: {e}", action=action, exc_info=True)

    def record(self, actor, action: str, description: str, **kwargs: Any) -> None:
        """Schedule ``safe_log`` on the background spawner and return immediately."""
        if self.background is None:
            raise RuntimeError("ActivityLogger.record needs a BackgroundSpawner")
        self.background.spawn(self.safe_log(actor, action, description, **kwargs), name=f"activity-{action}")
