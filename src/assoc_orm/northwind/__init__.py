"""
Демонстрационная модель Northwind: сущности, ассоциации и примеры запросов
"""

from ..registry import default_registry
from .models import BIG_DISCOUNT, Employee, EmployeeTerritory, Order, OrderDetail, Territory
from .extensions import details_query, order_details, order_employee

# Описание ассоциаций проверяется при импорте, а не при первом запросе
default_registry.validate()

__all__ = [
    "BIG_DISCOUNT",
    "Employee",
    "EmployeeTerritory",
    "Order",
    "OrderDetail",
    "Territory",
    "details_query",
    "order_details",
    "order_employee",
]
