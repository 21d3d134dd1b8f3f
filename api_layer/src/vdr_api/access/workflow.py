"""
Access Workflow

Request → admin approve/reject → revoke lifecycle for item access.

Rules enforced here:
- a request starts ``pending`` with a non-empty set of access types;
- only ``pending`` requests can be decided, and both decisions are terminal;
- a user's effective access on an item is the union of all of their approved requests;
- a file's share counter grows once per (user, file), on that user's first approval;
- a request left with no access types after a partial revoke is deleted.

Email, in-app notifications and activity rows are spawned in the background and
never affect the outcome of the operation.
"""

from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from uuid import UUID

from loguru import logger

from vdr_api.access.models import AccessCheck
from vdr_api.access.models import AccessRequest
from vdr_api.access.models import ItemUser
from vdr_api.access.models import RevokeResult
from vdr_api.auth.tokens import Principal
from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_access import AccessRequestRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.enums import ALL_ACCESS_TYPES
from vdr_api.enums import AccessStatus
from vdr_api.enums import AccessType
from vdr_api.enums import ItemType
from vdr_api.errors import ConflictError
from vdr_api.errors import ForbiddenError
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.notify.notifier import Notifier
from vdr_api.notify.notifier import html_message

LIST_LIMIT = 100


def normalize_access_types(values: Iterable[Any]) -> List[AccessType]:
    """
    Parse requested access types, dropping duplicates but keeping their order.

    Raises:
        InputValidationError: Empty input or an unknown type
    """
    result: List[AccessType] = []
    for value in values:
        try:
            access_type = AccessType(str(value).strip().upper())
        except ValueError as e:
            raise InputValidationError(f"Unknown access type: {value}") from e
        if access_type not in result:
            result.append(access_type)

    if not result:
        raise InputValidationError("accessTypes must be a non-empty list")
    return result


def union_access_types(rows: Iterable[Dict[str, Any]]) -> List[AccessType]:
    """Union of the access types across request rows, in canonical order."""
    granted = {value for row in rows for value in row["access_types"]}
    return [access_type for access_type in ALL_ACCESS_TYPES if access_type.value in granted]


def require_admin(actor: Principal) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Admin only")


class AccessWorkflow:
    """Access request lifecycle and effective-access queries."""

    def __init__(
        self,
        requests: AccessRequestRepository,
        users: UserRepository,
        notifier: Notifier,
        activity: ActivityLogger,
        background: BackgroundSpawner,
    ):
        self.requests = requests
        self.users = users
        self.notifier = notifier
        self.activity = activity
        self.background = background

    async def request_access(
        self,
        requester: Principal,
        item_id: UUID,
        item_type: ItemType,
        item_name: str,
        access_types: Iterable[Any],
    ) -> UUID:
        """
        Create a pending request and tell the admins about it.

        Returns:
            The new request id
        """
        if not requester.email:
            raise InputValidationError("Requester email is required")
        if not item_name or not item_name.strip():
            raise InputValidationError("itemName is required")
        types = normalize_access_types(access_types)

        request_id = await self.requests.create(
            user_email=requester.email,
            item_id=item_id,
            item_type=ItemType(item_type).value,
            item_name=item_name.strip(),
            access_types=[t.value for t in types],
        )
        logger.info(
            "Access request created",
            request_id=str(request_id),
            requester=requester.email,
            item_id=str(item_id),
            item_type=ItemType(item_type).value,
            access_types=[t.value for t in types],
        )

        type_list = ", ".join(t.value for t in types)
        self.background.spawn(
            self.notifier.email_admins(
                f"Access Request: {item_name}",
                html_message(f"{requester.email} requested {type_list} access to {item_name}."),
            ),
            name="email-admins-access-request",
        )
        self.background.spawn(
            self.activity.safe_log(
                requester,
                "request_access",
                f"Requested {type_list} access to {item_name}",
                resource_id=item_id,
                resource_type=ItemType(item_type).value,
                meta={"request_id": str(request_id), "access_types": [t.value for t in types]},
            ),
            name="activity-request-access",
        )
        return request_id

    async def list_access_requests(self, actor: Principal) -> List[AccessRequest]:
        """Newest requests first, at most 100. Admin only."""
        require_admin(actor)
        rows = await self.requests.list_recent(LIST_LIMIT)
        return [AccessRequest.model_validate(row) for row in rows]

    async def update_access_status(self, request_id: UUID, decision: str, approver: Principal) -> AccessRequest:
        """
        Approve or reject a pending request.

        On the first approval of a file for a given user, the file's share counter
        is incremented in the same transaction as the status change.

        Raises:
            ForbiddenError: Approver is not an admin
            InputValidationError: Decision is not ``approved`` or ``rejected``
            NotFoundError: Unknown request
            ConflictError: Request was already decided
        """
        require_admin(approver)
        try:
            status = AccessStatus(decision)
        except ValueError as e:
            raise InputValidationError("Invalid status") from e
        if status == AccessStatus.PENDING:
            raise InputValidationError("Invalid status")

        share_counted = False
        async with self.requests.transaction() as repo:
            record = await repo.get(request_id)
            if record is None:
                raise NotFoundError("Request not found")
            if record["status"] != AccessStatus.PENDING.value:
                raise ConflictError(f"Request already {record['status']}")
            if not await repo.set_status(request_id, status.value, approver.email):
                raise ConflictError("Request is no longer pending")

            if status == AccessStatus.APPROVED and record["item_type"] == ItemType.FILE.value:
                prior_approvals = await repo.count_other_approved(
                    record["user_email"], record["item_id"], record["item_type"], request_id
                )
                if prior_approvals == 0:
                    await repo.increment_share_count(record["item_id"])
                    share_counted = True

            decided = await repo.get(request_id)

        logger.info(
            f"Access request {status.value}",
            request_id=str(request_id),
            approver=approver.email,
            requester=record["user_email"],
            share_counted=share_counted,
        )

        access_request = AccessRequest.model_validate(decided)
        type_list = ", ".join(t.value for t in access_request.access_types)
        item_name = access_request.item_name

        self.background.spawn(
            self.notifier.email_user(
                access_request.user_email,
                f"Access Request {status.value.title()}",
                html_message(f"Your request for {type_list} access to {item_name} has been {status.value}."),
            ),
            name="email-access-decision",
        )
        self.background.spawn(
            self.notifier.notify_user(
                access_request.user_email,
                f"Access {status.value.title()}: {item_name}",
                f"Your request for {type_list} has been {status.value}.",
            ),
            name="notify-access-decision",
        )
        self.background.spawn(
            self.activity.safe_log(
                approver,
                f"access_{status.value}",
                f"{status.value.title()} {type_list} access to {item_name} for {access_request.user_email}",
                resource_id=access_request.item_id,
                resource_type=access_request.item_type.value,
                meta={"request_id": str(request_id), "share_counted": share_counted},
            ),
            name="activity-access-decision",
        )
        return access_request

    async def check_user_access(self, user: Principal, item_id: UUID, item_type: ItemType) -> AccessCheck:
        """Admins hold every access type; everyone else holds the union of their approved requests."""
        if user.is_admin:
            return AccessCheck(has_access=True, access_types=list(ALL_ACCESS_TYPES))

        rows = await self.requests.list_approved_for_user(user.email, item_id, ItemType(item_type).value)
        access_types = union_access_types(rows)
        return AccessCheck(has_access=bool(access_types), access_types=access_types)

    async def revoke_all_access(self, request_id: UUID, actor: Principal) -> None:
        """Delete a request entirely. Admin only."""
        require_admin(actor)
        record = await self.requests.get(request_id)
        if record is None:
            raise NotFoundError("Request not found")

        await self.requests.delete(request_id)
        logger.info("Access revoked", request_id=str(request_id), revoked_by=actor.email, requester=record["user_email"])

        item_name = record["item_name"]
        self.background.spawn(
            self.notifier.email_user(
                record["user_email"],
                f"Access Revoked: {item_name}",
                html_message(f"Your access to {item_name} has been revoked."),
            ),
            name="email-access-revoked",
        )
        self.background.spawn(
            self.activity.safe_log(
                actor,
                "revoke_access_all",
                f"Revoked all access to {item_name} for {record['user_email']}",
                resource_id=record["item_id"],
                resource_type=record["item_type"],
                meta={"request_id": str(request_id), "access_types": list(record["access_types"])},
            ),
            name="activity-access-revoked",
        )

    async def revoke_specific_access(self, request_id: UUID, access_type: Any, actor: Principal) -> RevokeResult:
        """
        Remove one access type from a request; a request left empty is deleted. Admin only.

        Raises:
            InputValidationError: Unknown access type, or the request does not hold it
            NotFoundError: Unknown request
        """
        require_admin(actor)
        try:
            revoked = AccessType(str(access_type).strip().upper())
        except ValueError as e:
            raise InputValidationError("Invalid action or accessType") from e

        async with self.requests.transaction() as repo:
            record = await repo.get(request_id)
            if record is None:
                raise NotFoundError("Request not found")
            current = list(record["access_types"])
            if revoked.value not in current:
                raise InputValidationError(f"Request does not include {revoked.value} access")

            remaining = [value for value in current if value != revoked.value]
            if remaining:
                await repo.update_access_types(request_id, remaining)
            else:
                await repo.delete(request_id)

        logger.info(
            "Access type revoked",
            request_id=str(request_id),
            access_type=revoked.value,
            remaining=remaining,
            deleted=not remaining,
            revoked_by=actor.email,
        )

        item_name = record["item_name"]
        self.background.spawn(
            self.notifier.email_user(
                record["user_email"],
                f"Access Revoked: {item_name}",
                html_message(f"Your {revoked.value} access to {item_name} has been revoked."),
            ),
            name="email-access-type-revoked",
        )
        self.background.spawn(
            self.activity.safe_log(
                actor,
                "revoke_access_partial",
                f"Revoked {revoked.value} access to {item_name} for {record['user_email']}",
                resource_id=record["item_id"],
                resource_type=record["item_type"],
                meta={"request_id": str(request_id), "remaining": remaining},
            ),
            name="activity-access-type-revoked",
        )
        return RevokeResult(
            request_id=request_id,
            revoked=revoked,
            remaining=[AccessType(value) for value in remaining],
            deleted=not remaining,
        )

    async def get_item_users(self, item_id: UUID, item_type: ItemType) -> List[ItemUser]:
        """Admins first (full access), then every approved requester with their union of types."""
        admins = await self.users.list_admins()
        users: Dict[str, ItemUser] = {}
        for admin in admins:
            users[admin["email"]] = ItemUser(
                email=admin["email"],
                name=admin.get("name"),
                access_types=list(ALL_ACCESS_TYPES),
                is_admin=True,
            )

        rows = await self.requests.list_approved_for_item(item_id, ItemType(item_type).value)
        by_requester: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            if row["user_email"] in users:
                continue
            by_requester.setdefault(row["user_email"], []).append(row)

        for email, requester_rows in by_requester.items():
            users[email] = ItemUser(email=email, access_types=union_access_types(requester_rows))

        return list(users.values())
