"""
Модели Northwind и ассоциации между ними
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import and_

from ..associations import association, many_to_one, one_to_many
from ..mapping import Entity, column
from ..registry import register_model
from . import schema

# Порог "большой" скидки для отфильтрованной коллекции деталей заказа
BIG_DISCOUNT = 0.06


@register_model
@dataclass
class Employee(Entity):
    __table__ = schema.employees

    employee_id: Optional[int] = column("EmployeeID", primary_key=True)
    last_name: Optional[str] = column("LastName")
    first_name: Optional[str] = column("FirstName")
    title: Optional[str] = column("Title")
    birth_date: Optional[date] = column("BirthDate")
    hire_date: Optional[date] = column("HireDate")
    address: Optional[str] = column("Address")
    city: Optional[str] = column("City")
    region: Optional[str] = column("Region")
    postal_code: Optional[str] = column("PostalCode")
    country: Optional[str] = column("Country")
    home_phone: Optional[str] = column("HomePhone")
    reports_to: Optional[int] = column("ReportsTo")

    orders = one_to_many("Order", this_key="employee_id", other_key="employee_id", order_by="order_id")


@register_model
@dataclass
class Territory(Entity):
    __table__ = schema.territories

    territory_id: Optional[str] = column("TerritoryID", primary_key=True)
    territory_description: Optional[str] = column("TerritoryDescription")
    region_id: Optional[int] = column("RegionID")


@register_model
@dataclass
class EmployeeTerritory(Entity):
    __table__ = schema.employee_territories

    employee_id: Optional[int] = column("EmployeeID", primary_key=True)
    territory_id: Optional[str] = column("TerritoryID", primary_key=True)

    employee = many_to_one(Employee, this_key="employee_id", other_key="employee_id", can_be_null=False)
    territory = many_to_one(Territory, this_key="territory_id", other_key="territory_id", can_be_null=False)


@register_model
@dataclass
class OrderDetail(Entity):
    __table__ = schema.order_details

    order_id: Optional[int] = column("OrderID", primary_key=True)
    product_id: Optional[int] = column("ProductID", primary_key=True)
    unit_price: Optional[float] = column("UnitPrice")
    quantity: Optional[int] = column("Quantity")
    discount: Optional[float] = column("Discount")


def details_with_big_discount_filter(order, detail):
    """Условие отфильтрованной коллекции: детали заказа со скидкой больше BIG_DISCOUNT"""
    return and_(order.order_id == detail.order_id, detail.discount > BIG_DISCOUNT)


@register_model
@dataclass
class Order(Entity):
    __table__ = schema.orders

    order_id: Optional[int] = column("OrderID", primary_key=True)
    customer_id: Optional[str] = column("CustomerID")
    employee_id: Optional[int] = column("EmployeeID")
    order_date: Optional[datetime] = column("OrderDate")
    required_date: Optional[datetime] = column("RequiredDate")
    shipped_date: Optional[datetime] = column("ShippedDate")
    ship_via: Optional[int] = column("ShipVia")
    freight: Optional[float] = column("Freight")
    ship_name: Optional[str] = column("ShipName")
    ship_address: Optional[str] = column("ShipAddress")
    ship_city: Optional[str] = column("ShipCity")
    ship_country: Optional[str] = column("ShipCountry")

    employee = association(Optional[Employee], this_key="employee_id", other_key="employee_id", can_be_null=True)
    details = association(List[OrderDetail], this_key="order_id", other_key="order_id", order_by="product_id")
    details_with_big_discount = association(
        List[OrderDetail], predicate=details_with_big_discount_filter, order_by="product_id"
    )
