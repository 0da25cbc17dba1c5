import uuid
from dataclasses import dataclass
from typing import List, Optional

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table

from assoc_orm import (
    AssociationError, Entity, ModelRegistry, RegistrationError, association, column, default_registry
)
from assoc_orm.northwind import Employee, EmployeeTerritory, Order, OrderDetail, Territory, order_employee

metadata = MetaData()

parents = Table(
    "parents",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String),
)

children = Table(
    "children",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("parent_id", Integer),
)


def fresh_registry() -> ModelRegistry:
    return ModelRegistry(f"test-{uuid.uuid4().hex}")


def define_models(registry, other_key="parent_id", name_column="name"):
    @dataclass
    class Parent(Entity):
        __table__ = parents

        id: Optional[int] = column("id", primary_key=True)
        name: Optional[str] = column(name_column)

        children = association(List["Child"], this_key="id", other_key=other_key)

    @dataclass
    class Child(Entity):
        __table__ = children

        id: Optional[int] = column("id", primary_key=True)
        parent_id: Optional[int] = column("parent_id")

    registry.register(Parent)
    registry.register(Child)
    return Parent, Child


def test_registry_is_singleton_per_name():
    name = f"test-{uuid.uuid4().hex}"
    assert ModelRegistry(name) is ModelRegistry(name)
    assert ModelRegistry() is default_registry


def test_register_collects_columns_keys_and_associations():
    registry = fresh_registry()
    Parent, Child = define_models(registry)

    assert Parent._columns == {"id": "id", "name": "name"}
    assert Parent._primary_keys == ("id",)
    assert registry.get_model("Child") is Child
    assert registry.get_model_by_table("parents") is Parent
    assert registry.get_all_models() == {Parent, Child}
    assert set(registry.get_associations(Parent)) == {"children"}
    assert registry.get_association(Child, "children") is None


def test_validate_resolves_forward_reference():
    registry = fresh_registry()
    Parent, Child = define_models(registry)

    registry.validate()

    assert registry.get_association(Parent, "children").target_model is Child


def test_validate_rejects_unknown_key_field():
    registry = fresh_registry()
    define_models(registry, other_key="owner_id")

    with pytest.raises(AssociationError):
        registry.validate()


def test_validate_rejects_column_missing_from_table():
    registry = fresh_registry()
    define_models(registry, name_column="title")

    with pytest.raises(RegistrationError):
        registry.validate()


def test_validate_rejects_unregistered_target():
    registry = fresh_registry()

    @dataclass
    class Lonely(Entity):
        __table__ = parents

        id: Optional[int] = column("id", primary_key=True)
        name: Optional[str] = column("name")

        missing = association("Nowhere", this_key="id", other_key="id")

    registry.register(Lonely)

    with pytest.raises(AssociationError):
        registry.validate()


def test_register_requires_dataclass():
    class Plain(Entity):
        __table__ = parents

    with pytest.raises(RegistrationError):
        fresh_registry().register(Plain)


def test_register_requires_table():
    @dataclass
    class NoTable(Entity):
        id: Optional[int] = column("id", primary_key=True)

    with pytest.raises(RegistrationError):
        fresh_registry().register(NoTable)


def test_register_requires_mapped_fields_and_primary_key():
    @dataclass
    class Unmapped(Entity):
        __table__ = parents

        id: Optional[int] = None

    @dataclass
    class NoKey(Entity):
        __table__ = parents

        id: Optional[int] = column("id")

    with pytest.raises(RegistrationError):
        fresh_registry().register(Unmapped)
    with pytest.raises(RegistrationError):
        fresh_registry().register(NoKey)


def test_northwind_models_are_registered():
    default_registry.validate()

    assert default_registry.get_model("Order") is Order
    assert default_registry.get_model_by_table("Order Details") is OrderDetail
    assert {Employee, Territory, EmployeeTerritory, Order, OrderDetail} <= default_registry.get_all_models()
    assert set(default_registry.get_associations(Order)) == {"employee", "details", "details_with_big_discount"}
    assert EmployeeTerritory._primary_keys == ("employee_id", "territory_id")


def test_external_associations_are_listed_for_source_model():
    external = default_registry.get_external(Order)

    assert order_employee in external
    assert order_employee.resolve_target() is Employee
    assert default_registry.get_external(Territory) == []
