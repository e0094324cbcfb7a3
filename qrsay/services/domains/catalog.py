"""
Catalog Domain Service

Handles restaurant and menu fetches plus in-memory dish discovery over a
loaded menu snapshot.
"""

from typing import Iterable, Optional

from pydantic import ValidationError

from qrsay.errors import ApiError, ERROR_MENU_FETCH, ERROR_RESTAURANT_FETCH
from qrsay.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from qrsay.services.api import ApiClient, ApiEndpoints, unwrap_data
from qrsay.services.models import Dish, DishType, MenuCategory, Restaurant

logger = get_logger(__name__)

FILTER_ALL = "all"


def _pruned(category: MenuCategory, dishes: list[Dish]) -> MenuCategory:
    return category.model_copy(update={"items": dishes})


class MenuQueryEngine:
    """
    Read-only search and filtering over one restaurant's menu.

    Every query starts from the full menu the engine was built with and
    returns fresh category objects; the base menu is never mutated. To chain
    queries, build a new engine from a previous result.
    """

    def __init__(self, menu: Iterable[MenuCategory] = ()):
        self._menu: tuple[MenuCategory, ...] = tuple(menu)

    @property
    def menu(self) -> list[MenuCategory]:
        return list(self._menu)

    @property
    def is_empty(self) -> bool:
        return not any(category.items for category in self._menu)

    def search_dishes(self, query: Optional[str]) -> list[MenuCategory]:
        """
        Case-insensitive substring search on dish name and description.

        An empty query returns no results rather than the whole menu.
        """
        if not query or not query.strip():
            return []

        needle = query.strip().lower()
        results = []
        for category in self._menu:
            matches = [
                dish for dish in category.items
                if needle in dish.dish_name.lower()
                or (dish.description and needle in dish.description.lower())
            ]
            if matches:
                results.append(_pruned(category, matches))

        logger.debug(
            "Search %r matched %d categories",
            sanitize_string_for_logging(query),
            len(results),
        )
        return results

    def filter_dishes_by_type(self, dish_type: str) -> list[MenuCategory]:
        """
        Keep only dishes of one dietary type.

        Args:
            dish_type: "all", "veg" or "nonVeg"

        Raises:
            ValueError: unknown dish type
        """
        if dish_type == FILTER_ALL:
            return self.menu

        wanted = DishType(dish_type)
        results = []
        for category in self._menu:
            matches = [dish for dish in category.items if dish.dish_type == wanted]
            if matches:
                results.append(_pruned(category, matches))
        return results

    def filter_by_category(self, category_id: str) -> list[MenuCategory]:
        """The single category with this id, or an empty list."""
        return [c for c in self._menu if c.category_id == category_id]

    def find_dish(self, dish_id: str) -> Optional[Dish]:
        """Locate a dish anywhere in the menu."""
        for category in self._menu:
            for dish in category.items:
                if dish.id == dish_id:
                    return dish
        return None


class CatalogService:
    """Fetches restaurants and menus from the backend."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_restaurant_by_id(self, restaurant_id: str) -> Restaurant:
        """
        Fetch a restaurant with its fee configuration.

        Raises:
            ApiError: network failure or malformed payload
        """
        body = await self.api.get(
            f"{ApiEndpoints.GET_RESTAURANT_BY_ID}/{restaurant_id}",
            default_error=ERROR_RESTAURANT_FETCH,
        )
        try:
            return Restaurant.model_validate(unwrap_data(body))
        except ValidationError as e:
            logger.error(
                f"Malformed restaurant payload for {sanitize_id_for_logging(restaurant_id)}: {e}"
            )
            raise ApiError(ERROR_RESTAURANT_FETCH) from e

    async def get_menu(self, restaurant_id: str) -> list[MenuCategory]:
        """
        Fetch the categorized menu of a restaurant.

        Raises:
            ApiError: network failure or malformed payload
        """
        body = await self.api.get(
            f"{ApiEndpoints.GET_MENU}/{restaurant_id}",
            default_error=ERROR_MENU_FETCH,
        )
        data = unwrap_data(body)
        if isinstance(data, dict):
            data = data.get("menu", [])
        if not isinstance(data, list):
            raise ApiError(ERROR_MENU_FETCH)

        try:
            return [MenuCategory.model_validate(category) for category in data]
        except ValidationError as e:
            logger.error(f"Malformed menu for {sanitize_id_for_logging(restaurant_id)}: {e}")
            raise ApiError(ERROR_MENU_FETCH) from e
