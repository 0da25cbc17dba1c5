"""
Демонстрационные запросы с использованием ассоциаций
"""

import logging
from typing import Any, Callable, List, Optional

from sqlalchemy import func

from ..config import DataSettings
from ..session import DataSession
from ..utils.sql_builder import starts_with
from .models import BIG_DISCOUNT, EmployeeTerritory, Order

logger = logging.getLogger(__name__)

# Сколько строк берут запросы с ограничением (Take(10))
TAKE = 10

Writer = Callable[[str], None]


async def retrieve_order_information(settings: Optional[DataSettings] = None) -> List[Any]:
    """Заказы, у сотрудника которых адрес начинается с "B" (LEFT JOIN по Order.employee)"""
    async with DataSession(settings) as db:
        query = (
            db.query(Order)
            .filter(lambda order: starts_with(order.employee.address, "B"))
            .select(
                order_id=lambda order: order.order_id,
                order_date=lambda order: order.order_date,
                address=lambda order: order.employee.address,
            )
            .limit(TAKE)
        )
        return await query.all()


async def retrieve_territory_links(settings: Optional[DataSettings] = None) -> List[Any]:
    """Связи сотрудник-территория для территорий на "B" (INNER JOIN по обеим ассоциациям)"""
    async with DataSession(settings) as db:
        query = (
            db.query(EmployeeTerritory)
            .filter(lambda et: starts_with(et.territory.territory_description, "B"))
            .select(
                employee_id=lambda et: et.employee.employee_id,
                birth_date=lambda et: et.employee.birth_date,
                territory=lambda et: func.trim(et.territory.territory_description),
                address=lambda et: et.employee.address,
            )
        )
        return await query.all()


async def retrieve_order_details(settings: Optional[DataSettings] = None) -> List[Any]:
    """Заказы с деталью со скидкой больше порога и максимальная скидка по заказу"""
    async with DataSession(settings) as db:
        query = (
            db.query(Order)
            .filter(lambda order: order.details.any(lambda d: d.discount > BIG_DISCOUNT))
            .select(
                employee_id=lambda order: order.employee_id,
                max_discount=lambda order: order.details.max(lambda d: d.discount),
            )
            .limit(TAKE)
        )
        return await query.all()


async def retrieve_order_details_with_big_discount(settings: Optional[DataSettings] = None) -> List[Any]:
    """То же, что retrieve_order_details, через отфильтрованную ассоциацию"""
    async with DataSession(settings) as db:
        query = (
            db.query(Order)
            .filter(lambda order: order.details_with_big_discount.any())
            .select(
                employee_id=lambda order: order.employee_id,
                max_discount=lambda order: order.details_with_big_discount.max("discount"),
            )
            .limit(TAKE)
        )
        return await query.all()


SAMPLES = [
    retrieve_order_information,
    retrieve_territory_links,
    retrieve_order_details,
    retrieve_order_details_with_big_discount,
]


def format_row(row: Any) -> str:
    """Строка результата в виде "{ name = value, ... }" """
    fields = ", ".join(f"{key} = {value}" for key, value in row._mapping.items())
    return f"{{ {fields} }}"


async def run_samples(writer: Writer = print, settings: Optional[DataSettings] = None) -> int:
    """
    Последовательный запуск всех демонстрационных запросов

    Args:
        writer: Получатель строк результата
        settings: Настройки подключения (None - настройки процесса)

    Returns:
        Общее количество выведенных строк
    """
    total = 0
    for sample in SAMPLES:
        logger.info("Запуск %s", sample.__name__)
        rows = await sample(settings)
        for row in rows:
            writer(format_row(row))
        total += len(rows)
    return total
