from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_favorite import FavoriteRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_favorite_repository
from vdr_api.enums import ItemType
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.schemas.schemas import FavoriteBody

ROUTER_FAVORITES = APIRouter(tags=["Favorites"], prefix="/favorites")


@ROUTER_FAVORITES.get("")
async def list_favorites(
    user: Principal = Depends(get_current_user),
    favorites: FavoriteRepository = Depends(get_favorite_repository),
):
    """The caller's favorites with item names, sizes and folder details."""
    return await favorites.list(user.email)


@ROUTER_FAVORITES.post("", status_code=status.HTTP_201_CREATED)
async def add_favorite(
    body: FavoriteBody,
    user: Principal = Depends(get_current_user),
    favorites: FavoriteRepository = Depends(get_favorite_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Mark an item as favorite; adding it twice returns the existing entry."""
    favorite_id = await favorites.add(user.email, body.item_id, body.item_type.value)
    activity.record(
        user,
        "add_favorite",
        f"Added {body.item_type.value} {body.item_id} to favorites",
        resource_id=body.item_id,
        resource_type=body.item_type.value,
    )
    return {"id": favorite_id, "itemId": body.item_id, "itemType": body.item_type}


@ROUTER_FAVORITES.delete("/{item_id}")
async def remove_favorite(
    item_id: UUID,
    item_type: ItemType = Query(..., alias="type"),
    user: Principal = Depends(get_current_user),
    favorites: FavoriteRepository = Depends(get_favorite_repository),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    await favorites.remove(user.email, item_id, item_type.value)
    activity.record(
        user,
        "remove_favorite",
        f"Removed {item_type.value} {item_id} from favorites",
        resource_id=item_id,
        resource_type=item_type.value,
    )
    return {"message": "Removed from favorites"}
