from typing import List
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from loguru import logger

from vdr_api.access.models import AccessCheck
from vdr_api.access.models import AccessRequest
from vdr_api.access.models import ItemUser
from vdr_api.access.workflow import AccessWorkflow
from vdr_api.auth.tokens import Principal
from vdr_api.dependencies import get_access_workflow
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import require_admin
from vdr_api.enums import ItemType
from vdr_api.errors import InputValidationError
from vdr_api.schemas.schemas import AccessRequestBody
from vdr_api.schemas.schemas import AccessRequestCreatedResponse
from vdr_api.schemas.schemas import AccessUpdateBody
from vdr_api.schemas.schemas import MessageResponse

ROUTER_ACCESS = APIRouter(tags=["Access"], prefix="/access")


@ROUTER_ACCESS.post(
    "/request",
    status_code=status.HTTP_201_CREATED,
    response_model=AccessRequestCreatedResponse,
    response_model_by_alias=True,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Missing fields or unknown access type",
            "content": {"application/json": {"example": {"error": "Unknown access type: EDIT"}}},
        },
    },
)
async def request_access(
    body: AccessRequestBody,
    user: Principal = Depends(get_current_user),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Ask the admins for one or more access types on a file or folder."""
    request_id = await workflow.request_access(
        requester=user,
        item_id=body.item_id,
        item_type=body.item_type,
        item_name=body.item_name,
        access_types=body.access_types,
    )
    return AccessRequestCreatedResponse(message="Access request sent", request_id=request_id)


@ROUTER_ACCESS.get("/requests", response_model=List[AccessRequest], response_model_by_alias=True)
async def list_access_requests(
    user: Principal = Depends(get_current_user),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Newest 100 access requests (admin only)."""
    return await workflow.list_access_requests(user)


@ROUTER_ACCESS.put(
    "/requests/{request_id}",
    response_model=MessageResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Request not found",
            "content": {"application/json": {"example": {"error": "Request not found"}}},
        },
        status.HTTP_409_CONFLICT: {
            "description": "Request was already decided",
            "content": {"application/json": {"example": {"error": "Request already approved"}}},
        },
    },
)
async def update_access_request(
    request_id: UUID,
    body: AccessUpdateBody,
    admin: Principal = Depends(require_admin),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """
    Decide or partially revoke an access request.

    ``{"status": "approved"|"rejected"}`` decides a pending request;
    ``{"action": "revoke", "accessType": "VIEW"}`` removes one access type.
    """
    if body.action is not None:
        if body.action != "revoke" or not body.access_type:
            raise InputValidationError("Invalid action or accessType")
        result = await workflow.revoke_specific_access(request_id, body.access_type, admin)
        return MessageResponse(message=f"{result.revoked.value} access revoked successfully")

    if not body.status:
        raise InputValidationError("Invalid status")

    decided = await workflow.update_access_status(request_id, body.status, admin)
    return MessageResponse(message=f"Request {decided.status.value}")


@ROUTER_ACCESS.delete("/requests/{request_id}", response_model=MessageResponse)
async def revoke_access_request(
    request_id: UUID,
    admin: Principal = Depends(require_admin),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Revoke every access type granted by a request."""
    await workflow.revoke_all_access(request_id, admin)
    return MessageResponse(message="All access revoked successfully")


@ROUTER_ACCESS.get("/check", response_model=AccessCheck, response_model_by_alias=True)
async def check_access(
    item_id: UUID = Query(..., alias="itemId"),
    item_type: ItemType = Query(..., alias="itemType"),
    user: Principal = Depends(get_current_user),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Effective access of the caller on one item."""
    result = await workflow.check_user_access(user, item_id, item_type)
    logger.debug("Access checked", user=user.email, item_id=str(item_id), access_types=result.access_types)
    return result


@ROUTER_ACCESS.get("/item-users", response_model=List[ItemUser], response_model_by_alias=True)
async def item_users(
    item_id: UUID = Query(..., alias="itemId"),
    item_type: ItemType = Query(..., alias="itemType"),
    user: Principal = Depends(get_current_user),
    workflow: AccessWorkflow = Depends(get_access_workflow),
):
    """Everyone who can reach an item: admins first, then approved requesters."""
    return await workflow.get_item_users(item_id, item_type)
