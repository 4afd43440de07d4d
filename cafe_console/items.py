import logging
from typing import Any, Iterable, List, Optional, Union

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .exceptions import InvalidValue, MissingField
from .schemas import MenuItem, MenuItemInput

logger = logging.getLogger("cafe_console.items")


def validate_item(item: MenuItemInput) -> MenuItemInput:
    for field in ("item_name", "item_description", "category"):
        value = (getattr(item, field) or "").strip()
        if not value:
            raise MissingField(field)
        if len(value) < 2:
            raise InvalidValue(field, f"{field} must be at least 2 characters")
    if item.price <= 0:
        raise InvalidValue("price", "Price must be greater than 0")
    return item.model_copy(
        update={
            "item_name": item.item_name.strip(),
            "item_description": item.item_description.strip(),
            "category": item.category.strip(),
        }
    )


def filter_items(items: Iterable[MenuItem], query: Optional[str]) -> List[MenuItem]:
    q = (query or "").strip().lower()
    if not q:
        return list(items)
    return [
        i for i in items
        if any(q in (v or "").lower() for v in (i.item_name, i.category, i.item_description))
    ]


def _item_rows(data: Any) -> List[Any]:
    # /cafes/cafe/{id} answers either with the item list or with {"items": [...]}
    if isinstance(data, dict):
        return data.get("items") or []
    return data or []


class MenuItemController:
    def __init__(self, api: CafeApiClient, query_cache: QueryCache):
        self.api = api
        self.cache = query_cache

    async def list_items(self, cafe_id: str, query: Optional[str] = None) -> List[MenuItem]:
        async def fetch():
            return _item_rows(await self.api.get(f"/cafes/cafe/{cafe_id}"))

        rows = await self.cache.get_or_fetch(fetch, cache.ITEMS, cafe_id)
        return filter_items((MenuItem.model_validate(row) for row in rows), query)

    async def create_item(self, cafe_id: str, item: MenuItemInput) -> Any:
        item = validate_item(item)
        result = await self.api.post("/cafes/items/create", json={**item.model_dump(), "cafe_id": cafe_id})
        logger.info(f"Created item {item.item_name!r} for cafe {cafe_id}")
        await self.cache.invalidate(cache.ITEMS, cafe_id)
        return result

    async def update_item(self, cafe_id: str, item_id: Union[int, str], item: MenuItemInput) -> Any:
        item = validate_item(item)
        result = await self.api.put("/cafes/items/update", json={**item.model_dump(), "item_id": item_id})
        logger.info(f"Updated item {item_id} for cafe {cafe_id}")
        await self.cache.invalidate(cache.ITEMS, cafe_id)
        return result

    async def delete_item(self, cafe_id: str, item_id: Union[int, str]) -> Any:
        result = await self.api.delete("/cafes/items/delete", json={"item_id": item_id})
        logger.info(f"Deleted item {item_id} for cafe {cafe_id}")
        await self.cache.invalidate(cache.ITEMS, cafe_id)
        return result
