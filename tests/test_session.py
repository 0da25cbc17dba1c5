import pytest
from sqlalchemy import select

from assoc_orm import (
    AssociationError, ConfigurationError, DataSession, MultipleResultsFound, NoResultFound, QueryError,
    SessionError
)
from assoc_orm.config import sqlite_settings
from assoc_orm.northwind import (
    BIG_DISCOUNT, Employee, EmployeeTerritory, Order, OrderDetail, details_query, order_details, order_employee
)
from assoc_orm.northwind import schema
from assoc_orm.northwind.seed import EMPLOYEE_TERRITORIES, EMPLOYEES, ORDERS
from assoc_orm.session import get_engine
from assoc_orm.tracing import set_trace_writer, turn_trace_switch_on
from assoc_orm.utils.sql_builder import (
    between, ge, in_, is_null, le, like, lt, ne, starts_with, startswith
)


@pytest.mark.asyncio
async def test_employee_territory_associations_always_resolve(db):
    links = await db.query(EmployeeTerritory).include("employee", "territory").all()

    assert len(links) == len(EMPLOYEE_TERRITORIES)
    for link in links:
        assert link.employee is not None
        assert link.territory is not None
        assert link.employee.employee_id == link.employee_id
        assert link.territory.territory_id == link.territory_id


@pytest.mark.asyncio
async def test_details_match_rows_sharing_order_id(db, details_by_order):
    orders = await db.query(Order).include("details", "details_with_big_discount").all()

    assert len(orders) == len(ORDERS)
    for order in orders:
        expected = {row["ProductID"] for row in details_by_order[order.order_id]}
        expected_big = {
            row["ProductID"]
            for row in details_by_order[order.order_id]
            if row["Discount"] > BIG_DISCOUNT
        }

        details = {detail.product_id for detail in order.details}
        big = {detail.product_id for detail in order.details_with_big_discount}

        assert details == expected
        assert big == expected_big
        assert big <= details
        assert all(detail.discount > BIG_DISCOUNT for detail in order.details_with_big_discount)
        assert all(detail.order_id == order.order_id for detail in order.details)


@pytest.mark.asyncio
async def test_filtered_association_any_equals_explicit_predicate(db, details_by_order):
    via_predicate = await (
        db.query(Order)
        .filter(lambda o: o.details.any(lambda d: d.discount > BIG_DISCOUNT))
        .select("order_id")
        .all()
    )
    via_association = await (
        db.query(Order)
        .filter(lambda o: o.details_with_big_discount.any())
        .select("order_id")
        .all()
    )

    expected = {
        order_id
        for order_id, rows in details_by_order.items()
        if any(row["Discount"] > BIG_DISCOUNT for row in rows)
    }

    assert {row.order_id for row in via_predicate} == expected
    assert {row.order_id for row in via_association} == expected


@pytest.mark.asyncio
async def test_aggregate_is_scoped_to_owning_row(db, details_by_order):
    rows = await (
        db.query(Order)
        .filter(lambda o: o.details.any())
        .select(
            order_id=lambda o: o.order_id,
            max_discount=lambda o: o.details.max(lambda d: d.discount),
            detail_count=lambda o: o.details.count(),
            big_count=lambda o: o.details.count(lambda d: d.discount > BIG_DISCOUNT),
        )
        .all()
    )

    # Без размножения строк: одна строка на заказ
    assert len(rows) == len(ORDERS)
    for row in rows:
        details = details_by_order[row.order_id]
        assert row.max_discount == pytest.approx(max(d["Discount"] for d in details))
        assert row.detail_count == len(details)
        assert row.big_count == sum(1 for d in details if d["Discount"] > BIG_DISCOUNT)


@pytest.mark.asyncio
async def test_collection_all_and_where(db, details_by_order):
    all_big = await (
        db.query(Order)
        .filter(lambda o: o.details.all(lambda d: d.discount > BIG_DISCOUNT))
        .select("order_id")
        .all()
    )
    with_where = await (
        db.query(Order)
        .filter(lambda o: o.details.where(lambda d: d.discount > BIG_DISCOUNT).any())
        .select("order_id")
        .all()
    )

    assert {row.order_id for row in all_big} == {
        order_id
        for order_id, rows in details_by_order.items()
        if all(row["Discount"] > BIG_DISCOUNT for row in rows)
    }
    assert {row.order_id for row in with_where} == {
        order_id
        for order_id, rows in details_by_order.items()
        if any(row["Discount"] > BIG_DISCOUNT for row in rows)
    }


@pytest.mark.asyncio
async def test_take_is_reproducible(db):
    def build():
        return (
            db.query(Order)
            .filter(lambda o: o.details_with_big_discount.any())
            .select("order_id", "employee_id")
            .limit(10)
        )

    first = await build().all()
    second = await build().all()

    assert len(first) == 10
    assert [tuple(row) for row in first] == [tuple(row) for row in second]


@pytest.mark.asyncio
async def test_order_without_employee(db, orders_without_employee):
    assert orders_without_employee

    everything = await db.query(Order).select("order_id").all()
    assert orders_without_employee <= {row.order_id for row in everything}

    by_address = await (
        db.query(Order)
        .filter(lambda o: starts_with(o.employee.address, "B"))
        .select("order_id")
        .all()
    )
    assert by_address
    assert not orders_without_employee & {row.order_id for row in by_address}

    missing = await db.query(Order).filter(lambda o: o.employee.is_none()).select("order_id").all()
    assert {row.order_id for row in missing} == orders_without_employee

    projected = await db.query(Order).select("order_id", "employee.address").all()
    assert len(projected) == len(ORDERS)
    for row in projected:
        if row.order_id in orders_without_employee:
            assert row.address is None
        else:
            assert row.address is not None

    order = await db.query(Order).filter_by(order_id=min(orders_without_employee)).include("employee").one()
    assert order.employee is None


@pytest.mark.asyncio
async def test_identity_map_shares_instances(db):
    orders = await db.query(Order).filter(lambda o: o.employee_id == 5).include("employee").all()

    assert len(orders) > 1
    assert all(order.employee is orders[0].employee for order in orders)

    employee = await db.query(Employee).filter_by(employee_id=5).one()
    assert employee is orders[0].employee


@pytest.mark.asyncio
async def test_explicit_load_and_extension_associations(db, details_by_order):
    order = await db.query(Order).filter_by(order_id=10250).one()

    details = await db.load(order, "details")
    assert {d.product_id for d in details} == {row["ProductID"] for row in details_by_order[10250]}
    assert order.details is details

    employee = await db.load(order, order_employee)
    assert employee.employee_id == order.employee_id
    # Внешняя ассоциация не становится атрибутом модели
    with pytest.raises(AssociationError):
        order.employee

    external_details = await db.load(order, order_details)
    assert [d.product_id for d in external_details] == [d.product_id for d in details]

    queried = await details_query(order, db).order_by("product_id").all()
    assert queried == sorted(details, key=lambda d: d.product_id)


@pytest.mark.asyncio
async def test_unknown_association_is_rejected(db):
    order = await db.query(Order).first()

    with pytest.raises(AssociationError):
        await db.load(order, "customer")


@pytest.mark.asyncio
async def test_one_first_count(db):
    assert await db.query(Order).count() == len(ORDERS)
    assert await db.query(Order).filter(lambda o: o.employee.is_none()).count() == sum(
        1 for row in ORDERS if row["EmployeeID"] is None
    )

    first = await db.query(Order).order_by("order_id").first()
    assert isinstance(first, Order)
    assert first.order_id == ORDERS[0]["OrderID"]

    with pytest.raises(MultipleResultsFound):
        await db.query(Order).one()
    with pytest.raises(NoResultFound):
        await db.query(Order).filter_by(order_id=-1).one()
    assert await db.query(Order).filter_by(order_id=-1).one_or_none() is None


@pytest.mark.asyncio
async def test_include_with_projection_is_rejected(db):
    with pytest.raises(QueryError):
        await db.query(Order).select("order_id").include("details").all()


@pytest.mark.asyncio
async def test_trace_writes_one_line_per_statement(db):
    lines = []
    turn_trace_switch_on()
    set_trace_writer(lambda line, category: lines.append((category, line)))

    await db.query(Order).filter(lambda o: o.details.any()).limit(3).include("details").all()

    assert len(lines) == 2
    assert all(category == "query" for category, _ in lines)
    assert "EXISTS" in lines[0][1]


@pytest.mark.asyncio
async def test_execute_requires_connection(settings):
    session = DataSession(settings)

    with pytest.raises(SessionError):
        await session.execute(select(OrderDetail.__table__))


@pytest.mark.asyncio
async def test_session_releases_connection_on_error(settings):
    session = DataSession(settings)

    with pytest.raises(NoResultFound):
        async with session:
            await session.query(Order).filter_by(order_id=-1).one()

    assert not session.is_connected


@pytest.mark.asyncio
async def test_missing_database_file(tmp_path):
    with pytest.raises(SessionError):
        async with DataSession(sqlite_settings(str(tmp_path / "missing.sqlite"))):
            pass


@pytest.mark.asyncio
async def test_unknown_configuration(settings):
    with pytest.raises(ConfigurationError):
        async with DataSession(settings, configuration="Nope"):
            pass


@pytest.mark.asyncio
async def test_collection_predicate_scoped_to_owning_order(db, details_by_order):
    rows = await (
        db.query(Order)
        .filter(lambda o: o.details.any(lambda d: (d.discount > BIG_DISCOUNT) & (o.employee.city == "London")))
        .select("order_id", "employee_id")
        .all()
    )

    london = {e["EmployeeID"] for e in EMPLOYEES if e["City"] == "London"}
    expected = {
        row["OrderID"]
        for row in ORDERS
        if row["EmployeeID"] in london
        and any(d["Discount"] > BIG_DISCOUNT for d in details_by_order[row["OrderID"]])
    }

    assert expected
    assert {row.order_id for row in rows} == expected
    assert all(row.employee_id in london for row in rows)


@pytest.mark.asyncio
async def test_prefix_filter_is_case_sensitive(db):
    await db.execute(schema.employees.insert().values(
        EmployeeID=7, LastName="Callahan", FirstName="Laura", Address="bay road 1", City="Seattle"
    ))
    await db.execute(schema.orders.insert().values(OrderID=1, EmployeeID=7))

    upper = await (
        db.query(Order)
        .filter(lambda o: starts_with(o.employee.address, "B"))
        .select("order_id", "employee.address")
        .all()
    )
    by_condition = await db.query(Order).filter(startswith("employee.address", "B")).select("order_id").all()
    lower = await db.query(Order).filter(startswith("employee.address", "b")).select("order_id").all()

    assert upper
    assert all(row.address.startswith("B") for row in upper)
    assert 1 not in {row.order_id for row in upper}
    assert {row.order_id for row in by_condition} == {row.order_id for row in upper}
    assert [row.order_id for row in lower] == [1]


@pytest.mark.parametrize(
    "condition, expected",
    [
        (ne("employee_id", 5), lambda row: row["EmployeeID"] is not None and row["EmployeeID"] != 5),
        (ge("freight", 40), lambda row: row["Freight"] >= 40),
        (lt("freight", 20), lambda row: row["Freight"] < 20),
        (le("freight", 16.75), lambda row: row["Freight"] <= 16.75),
        (in_("employee_id", [5, 6]), lambda row: row["EmployeeID"] in (5, 6)),
        (like("ship_city", "R%"), lambda row: row["ShipCity"].startswith("R")),
        (between("order_id", 10250, 10252), lambda row: 10250 <= row["OrderID"] <= 10252),
        (is_null("employee_id"), lambda row: row["EmployeeID"] is None),
    ],
)
@pytest.mark.asyncio
async def test_condition_factories_filter_orders(db, condition, expected):
    rows = await db.query(Order).filter(condition).select("order_id").all()

    matching = {row["OrderID"] for row in ORDERS if expected(row)}
    assert matching
    assert {row.order_id for row in rows} == matching


@pytest.mark.asyncio
async def test_one_to_many_employee_orders(db):
    employees = await db.query(Employee).include("orders").all()

    assert len(employees) == len(EMPLOYEES)
    for employee in employees:
        expected = sorted(row["OrderID"] for row in ORDERS if row["EmployeeID"] == employee.employee_id)
        assert [order.order_id for order in employee.orders] == expected

    busy = await db.query(Employee).filter(lambda e: e.orders.count() > 3).select("employee_id").all()
    assert {row.employee_id for row in busy} == {
        employee_id
        for employee_id in {row["EmployeeID"] for row in ORDERS} - {None}
        if sum(1 for row in ORDERS if row["EmployeeID"] == employee_id) > 3
    }


@pytest.mark.asyncio
async def test_engine_cache_is_keyed_by_echo(settings):
    connection = settings.get_connection()

    plain = get_engine(connection)
    echoing = get_engine(connection, echo=True)

    assert get_engine(connection) is plain
    assert echoing is not plain
    assert echoing.echo
    assert not plain.echo
