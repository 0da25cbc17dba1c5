import pytest
import pytest_asyncio

from assoc_orm import DataSession, dispose_engines, set_default_settings, tracing
from assoc_orm.config import sqlite_settings
from assoc_orm.northwind.seed import ORDER_DETAILS, ORDERS, seed_database


# Свежая БД Northwind на каждый тест; движки закрываются в том же цикле событий
@pytest_asyncio.fixture(scope="function")
async def database(tmp_path):
    path = await seed_database(tmp_path / "Northwind.sqlite")
    yield path
    await dispose_engines()


@pytest.fixture(scope="function")
def settings(database):
    return sqlite_settings(str(database))


@pytest_asyncio.fixture(scope="function")
async def db(settings):
    async with DataSession(settings) as session:
        yield session


@pytest.fixture(autouse=True)
def reset_process_state():
    yield
    set_default_settings(None)
    tracing.turn_trace_switch_on(False)
    tracing.set_trace_writer(None)


@pytest.fixture
def details_by_order():
    grouped = {row["OrderID"]: [] for row in ORDERS}
    for row in ORDER_DETAILS:
        grouped[row["OrderID"]].append(row)
    return grouped


@pytest.fixture
def orders_without_employee():
    return {row["OrderID"] for row in ORDERS if row["EmployeeID"] is None}
