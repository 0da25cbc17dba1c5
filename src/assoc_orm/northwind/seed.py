"""
Создание и заполнение демонстрационной БД Northwind
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Union

from sqlalchemy.ext.asyncio import create_async_engine

from . import schema

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

EMPLOYEES: List[Row] = [
    {"EmployeeID": 1, "LastName": "Davolio", "FirstName": "Nancy", "Title": "Sales Representative",
     "BirthDate": date(1948, 12, 8), "HireDate": date(1992, 5, 1),
     "Address": "507 - 20th Ave. E. Apt. 2A", "City": "Seattle", "Region": "WA",
     "PostalCode": "98122", "Country": "USA", "HomePhone": "(206) 555-9857", "ReportsTo": 2},
    {"EmployeeID": 2, "LastName": "Fuller", "FirstName": "Andrew", "Title": "Vice President, Sales",
     "BirthDate": date(1952, 2, 19), "HireDate": date(1992, 8, 14),
     "Address": "908 W. Capital Way", "City": "Tacoma", "Region": "WA",
     "PostalCode": "98401", "Country": "USA", "HomePhone": "(206) 555-9482", "ReportsTo": None},
    {"EmployeeID": 3, "LastName": "Leverling", "FirstName": "Janet", "Title": "Sales Representative",
     "BirthDate": date(1963, 8, 30), "HireDate": date(1992, 4, 1),
     "Address": "722 Moss Bay Blvd.", "City": "Kirkland", "Region": "WA",
     "PostalCode": "98033", "Country": "USA", "HomePhone": "(206) 555-3412", "ReportsTo": 2},
    {"EmployeeID": 4, "LastName": "Peacock", "FirstName": "Margaret", "Title": "Sales Representative",
     "BirthDate": date(1937, 9, 19), "HireDate": date(1993, 5, 3),
     "Address": "4110 Old Redmond Rd.", "City": "Redmond", "Region": "WA",
     "PostalCode": "98052", "Country": "USA", "HomePhone": "(206) 555-8122", "ReportsTo": 2},
    {"EmployeeID": 5, "LastName": "Buchanan", "FirstName": "Steven", "Title": "Sales Manager",
     "BirthDate": date(1955, 3, 4), "HireDate": date(1993, 10, 17),
     "Address": "Baker Street 14", "City": "London", "Region": None,
     "PostalCode": "SW1 8JR", "Country": "UK", "HomePhone": "(71) 555-4848", "ReportsTo": 2},
    {"EmployeeID": 6, "LastName": "Suyama", "FirstName": "Michael", "Title": "Sales Representative",
     "BirthDate": date(1963, 7, 2), "HireDate": date(1993, 10, 17),
     "Address": "Brook Lane 3", "City": "London", "Region": None,
     "PostalCode": "EC2 7JR", "Country": "UK", "HomePhone": "(71) 555-7773", "ReportsTo": 5},
]

# Описания хранятся как nchar(50) - с хвостовыми пробелами
TERRITORIES: List[Row] = [
    {"TerritoryID": territory_id, "TerritoryDescription": description.ljust(50), "RegionID": region_id}
    for territory_id, description, region_id in [
        ("01581", "Westboro", 1),
        ("01730", "Bedford", 1),
        ("02116", "Boston", 1),
        ("02139", "Cambridge", 1),
        ("02184", "Braintree", 1),
        ("03049", "Hollis", 3),
        ("44122", "Beachwood", 3),
        ("48075", "Southfield", 3),
        ("72716", "Bentonville", 4),
        ("75234", "Dallas", 4),
    ]
]

EMPLOYEE_TERRITORIES: List[Row] = [
    {"EmployeeID": employee_id, "TerritoryID": territory_id}
    for employee_id, territory_id in [
        (1, "01581"), (1, "02116"),
        (2, "01730"), (2, "02184"), (2, "03049"),
        (3, "75234"),
        (4, "44122"), (4, "48075"),
        (5, "02139"), (5, "72716"),
        (6, "01581"),
    ]
]

FIRST_ORDER_ID = 10248
ORDER_COUNT = 24

# None - заказ без сотрудника
_EMPLOYEE_CYCLE = [5, 6, 4, 3, 1, None, 2]
_DISCOUNTS = [0.0, 0.05, 0.06, 0.1, 0.15, 0.2, 0.25, 0.0, 0.05]
_CITIES = [("Reims", "France"), ("Münster", "Germany"), ("Rio de Janeiro", "Brazil"), ("Lyon", "France")]


def _build_orders() -> List[Row]:
    start = datetime(1996, 7, 4)
    rows = []
    for i in range(ORDER_COUNT):
        city, country = _CITIES[i % len(_CITIES)]
        order_date = start + timedelta(days=i)
        rows.append({
            "OrderID": FIRST_ORDER_ID + i,
            "CustomerID": f"C{i % 5:04d}",
            "EmployeeID": _EMPLOYEE_CYCLE[i % len(_EMPLOYEE_CYCLE)],
            "OrderDate": order_date,
            "RequiredDate": order_date + timedelta(days=28),
            "ShippedDate": order_date + timedelta(days=7 + i % 5) if i % 6 else None,
            "ShipVia": 1 + i % 3,
            "Freight": round(10.5 + i * 3.25, 2),
            "ShipName": f"Customer {i % 5}",
            "ShipAddress": f"{i + 1} Main St.",
            "ShipCity": city,
            "ShipCountry": country,
        })
    return rows


def _build_order_details() -> List[Row]:
    rows = []
    for i in range(ORDER_COUNT):
        for j in range(1 + i % 3):
            rows.append({
                "OrderID": FIRST_ORDER_ID + i,
                "ProductID": 11 + (i * 3 + j * 7) % 60,
                "UnitPrice": round(5.0 + ((i + j) % 8) * 2.5, 2),
                "Quantity": 1 + (i * 7 + j) % 20,
                "Discount": _DISCOUNTS[(i * 2 + j) % len(_DISCOUNTS)],
            })
    return rows


ORDERS: List[Row] = _build_orders()
ORDER_DETAILS: List[Row] = _build_order_details()

TABLE_ROWS = [
    (schema.employees, EMPLOYEES),
    (schema.territories, TERRITORIES),
    (schema.employee_territories, EMPLOYEE_TERRITORIES),
    (schema.orders, ORDERS),
    (schema.order_details, ORDER_DETAILS),
]


async def seed_database(path: Union[str, Path], force: bool = False) -> Path:
    """
    Создание файла SQLite со схемой и демонстрационными данными

    Args:
        path: Путь к файлу БД
        force: Перезаписать существующий файл

    Returns:
        Путь к созданному файлу

    Raises:
        FileExistsError: Если файл существует и force не указан
    """
    path = Path(path)

    if path.exists():
        if not force:
            raise FileExistsError(f"Файл {path} уже существует (используйте force)")
        path.unlink()

    path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(f"sqlite+aiosqlite:///{path.as_posix()}")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(schema.metadata.create_all)
            for table, rows in TABLE_ROWS:
                await conn.execute(table.insert(), rows)
                logger.debug("Таблица %s: %d строк", table.name, len(rows))
    finally:
        await engine.dispose()

    logger.info("Демонстрационная БД создана: %s", path)
    return path
