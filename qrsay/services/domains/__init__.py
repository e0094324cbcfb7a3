"""Domain services wrapping the backend API."""
from .catalog import CatalogService, MenuQueryEngine
from .promo import PromoService
from .orders import OrderService
from .ordering import OrderingSession, RequestStatus

__all__ = [
    "CatalogService",
    "MenuQueryEngine",
    "PromoService",
    "OrderService",
    "OrderingSession",
    "RequestStatus",
]
