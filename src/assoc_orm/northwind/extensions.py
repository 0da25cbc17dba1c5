"""
Ассоциации Order, объявленные вне класса модели

Это данные, а не методы: в запросах они используются через
EntityRef.navigate(), загружаются через DataSession.load().

    lambda order: starts_with(order.navigate(order_employee).address, "B")
"""

from typing import List, Optional

from ..associations import external_association
from ..query import Query
from .models import Employee, Order, OrderDetail

order_employee = external_association(
    Order, "employee_ext", Optional[Employee],
    this_key="employee_id", other_key="employee_id", can_be_null=True,
)

order_details = external_association(
    Order, "details_ext", List[OrderDetail],
    this_key="order_id", other_key="order_id",
)


def details_query(order: Order, session) -> Query[OrderDetail]:
    """
    Запрос деталей конкретного заказа

    Args:
        order: Загруженный заказ
        session: Открытая DataSession

    Returns:
        Query по OrderDetail, отфильтрованный по ключу заказа
    """
    return session.query(OrderDetail).filter_by(order_id=order.order_id)
