"""
Утилиты для построения SQL условий и компиляции запросов
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.dialects import sqlite
from sqlalchemy.sql.elements import ColumnElement

from ..exceptions import QueryError


@dataclass
class Condition:
    """Структурированное условие для фильтрации

    field может быть путём через ассоциации: "employee.address".
    """
    field: str
    operator: str = "="
    value: Any = None

    def __str__(self) -> str:
        """Строковое представление условия"""
        if self.operator == "in":
            values = ", ".join(repr(v) for v in self.value)
            return f"{self.field} IN ({values})"
        elif self.operator == "like":
            return f"{self.field} LIKE {repr(self.value)}"
        elif self.operator == "startswith":
            return f"{self.field} STARTS WITH {repr(self.value)}"
        elif self.operator == "between":
            return f"{self.field} BETWEEN {repr(self.value[0])} AND {repr(self.value[1])}"
        elif self.operator == "is_null":
            return f"{self.field} IS NULL"
        else:
            return f"{self.field} {self.operator} {repr(self.value)}"

    def to_clause(self, ref: Any) -> ColumnElement:
        """
        Преобразование в выражение SQLAlchemy относительно сущности

        Args:
            ref: EntityRef, от которой разрешается путь field

        Returns:
            Булево выражение
        """
        column = ref.resolve_path(self.field)

        if self.operator == "=":
            return column == self.value
        elif self.operator == "!=":
            return column != self.value
        elif self.operator == ">":
            return column > self.value
        elif self.operator == ">=":
            return column >= self.value
        elif self.operator == "<":
            return column < self.value
        elif self.operator == "<=":
            return column <= self.value
        elif self.operator == "in":
            return column.in_(list(self.value))
        elif self.operator == "like":
            return column.like(self.value)
        elif self.operator == "startswith":
            return starts_with(column, self.value)
        elif self.operator == "between":
            return column.between(self.value[0], self.value[1])
        elif self.operator == "is_null":
            return column.is_(None)

        raise QueryError(f"Неподдерживаемый оператор условия: {self.operator}")


def starts_with(column: Any, prefix: str) -> ColumnElement:
    """
    Регистрозависимая проверка префикса

    LIKE в SQLite не различает регистр ASCII, поэтому префикс сравнивается
    через substr.

    Args:
        column: Колонка или выражение
        prefix: Искомый префикс

    Returns:
        Булево выражение
    """
    return func.substr(column, 1, len(prefix)) == prefix


def compile_statement(statement: Any) -> Tuple[str, Dict[str, Any]]:
    """
    Компиляция выражения в SQL диалекта SQLite

    Args:
        statement: Выражение SQLAlchemy (Select и т.п.)

    Returns:
        Кортеж (SQL запрос, параметры)
    """
    compiled = statement.compile(dialect=sqlite.dialect())
    return str(compiled), dict(compiled.params)


# Удобные фабричные функции для создания условий
def eq(field: str, value: Any) -> Condition:
    """Создание условия равенства"""
    return Condition(field, "=", value)


def ne(field: str, value: Any) -> Condition:
    """Создание условия неравенства"""
    return Condition(field, "!=", value)


def gt(field: str, value: Any) -> Condition:
    """Создание условия 'больше'"""
    return Condition(field, ">", value)


def ge(field: str, value: Any) -> Condition:
    """Создание условия 'больше или равно'"""
    return Condition(field, ">=", value)


def lt(field: str, value: Any) -> Condition:
    """Создание условия 'меньше'"""
    return Condition(field, "<", value)


def le(field: str, value: Any) -> Condition:
    """Создание условия 'меньше или равно'"""
    return Condition(field, "<=", value)


def in_(field: str, values: List[Any]) -> Condition:
    """Создание условия IN"""
    return Condition(field, "in", values)


def like(field: str, pattern: str) -> Condition:
    """Создание условия LIKE"""
    return Condition(field, "like", pattern)


def startswith(field: str, prefix: str) -> Condition:
    """Создание условия 'начинается с'"""
    return Condition(field, "startswith", prefix)


def between(field: str, lower: Any, upper: Any) -> Condition:
    """Создание условия BETWEEN"""
    return Condition(field, "between", (lower, upper))


def is_null(field: str) -> Condition:
    """Создание условия IS NULL"""
    return Condition(field, "is_null")
