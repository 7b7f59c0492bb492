from .analytics_service import AnalyticsService
from .conflict_detector import detect_conflicts
from .kitchen_service import KitchenService
from .order_service import OrderService
from .reservation_service import ReservationService
from .shop_service import ShopService
from .table_service import TableService

__all__ = [
    'AnalyticsService',
    'KitchenService',
    'OrderService',
    'ReservationService',
    'ShopService',
    'TableService',
    'detect_conflicts',
]
