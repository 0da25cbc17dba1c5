"""
Таблицы демонстрационной БД Northwind (подмножество колонок)
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
)

metadata = MetaData()

employees = Table(
    "Employees",
    metadata,
    Column("EmployeeID", Integer, primary_key=True),
    Column("LastName", String(20), nullable=False),
    Column("FirstName", String(10), nullable=False),
    Column("Title", String(30)),
    Column("BirthDate", Date),
    Column("HireDate", Date),
    Column("Address", String(60)),
    Column("City", String(15)),
    Column("Region", String(15)),
    Column("PostalCode", String(10)),
    Column("Country", String(15)),
    Column("HomePhone", String(24)),
    Column("ReportsTo", Integer, ForeignKey("Employees.EmployeeID")),
)

territories = Table(
    "Territories",
    metadata,
    Column("TerritoryID", String(20), primary_key=True),
    # nchar(50): описания дополнены пробелами
    Column("TerritoryDescription", String(50), nullable=False),
    Column("RegionID", Integer, nullable=False),
)

employee_territories = Table(
    "EmployeeTerritories",
    metadata,
    Column("EmployeeID", Integer, ForeignKey("Employees.EmployeeID"), primary_key=True),
    Column("TerritoryID", String(20), ForeignKey("Territories.TerritoryID"), primary_key=True),
)

orders = Table(
    "Orders",
    metadata,
    Column("OrderID", Integer, primary_key=True),
    Column("CustomerID", String(5)),
    Column("EmployeeID", Integer, ForeignKey("Employees.EmployeeID"), nullable=True),
    Column("OrderDate", DateTime),
    Column("RequiredDate", DateTime),
    Column("ShippedDate", DateTime),
    Column("ShipVia", Integer),
    Column("Freight", Float, default=0),
    Column("ShipName", String(40)),
    Column("ShipAddress", String(60)),
    Column("ShipCity", String(15)),
    Column("ShipCountry", String(15)),
)

order_details = Table(
    "Order Details",
    metadata,
    Column("OrderID", Integer, ForeignKey("Orders.OrderID"), primary_key=True),
    Column("ProductID", Integer, primary_key=True),
    Column("UnitPrice", Float, nullable=False, default=0),
    Column("Quantity", Integer, nullable=False, default=1),
    Column("Discount", Float, nullable=False, default=0),
)
