"""
Трансляция навигационных свойств в соединения и коррелированные подзапросы

Запросы описываются функциями над ссылками на сущности (EntityRef):

    lambda order: starts_with(order.employee.address, "B")
    lambda order: order.details.any(lambda d: d.discount > 0.06)

Одиночные ассоциации превращаются в JOIN внутри QueryContext, коллекции -
в EXISTS / скалярные подзапросы, скоррелированные с владеющей строкой.
Сам SQL генерирует SQLAlchemy Core.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from sqlalchemy import and_, func, literal_column, not_, select, text
from sqlalchemy.sql.elements import ClauseElement, ColumnElement
from sqlalchemy.sql.selectable import FromClause, Select

from .exceptions import QueryError

Selector = Union[str, Callable[[Any], Any], ColumnElement]


class QueryContext:
    """Контекст одного SELECT: FROM-часть и кэш соединений по пути навигации"""

    def __init__(self, model: Type[Any], selectable: Optional[FromClause] = None):
        """
        Args:
            model: Корневая модель
            selectable: Таблица или алиас корня (по умолчанию model.__table__)
        """
        self.model = model
        self.selectable = selectable if selectable is not None else model.__table__
        self._from = self.selectable
        self._joins: Dict[Tuple[int, ...], FromClause] = {}

    @property
    def from_clause(self) -> FromClause:
        return self._from

    def root(self) -> 'EntityRef':
        return EntityRef(self, self.model, self.selectable)

    def join(self, source: 'EntityRef', info: Any) -> 'EntityRef':
        """
        Соединение с целью одиночной ассоциации (повторно используется для того же пути)

        Args:
            source: Ссылка на источник навигации
            info: AssociationInfo одиночной ассоциации

        Returns:
            Ссылка на присоединённую сущность
        """
        path = source._path + (id(info),)
        target_model = info.resolve_target()
        # после LEFT JOIN все последующие соединения по цепочке тоже внешние
        nullable = info.can_be_null or source._nullable

        joined = self._joins.get(path)
        if joined is not None:
            return EntityRef(self, target_model, joined, path, nullable)

        alias = target_model.__table__.alias()
        target = EntityRef(self, target_model, alias, path, nullable)
        onclause = info.join_condition(source, target)

        self._from = self._from.join(alias, onclause, isouter=nullable)
        self._joins[path] = alias
        return target


class EntityRef:
    """Ссылка на сущность внутри запроса"""

    def __init__(
        self,
        context: QueryContext,
        model: Type[Any],
        selectable: FromClause,
        path: Tuple[int, ...] = (),
        nullable: bool = False,
    ):
        self._context = context
        self._model = model
        self._selectable = selectable
        self._path = path
        self._nullable = nullable

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)

        info = self._model._registry.get_association(self._model, name)
        if info is not None:
            return self.navigate(info)

        column_name = self._model._columns.get(name)
        if column_name is None:
            raise QueryError(
                f"У модели {self._model.__name__} нет поля или ассоциации '{name}'"
            )

        return self._selectable.c[column_name]

    def __repr__(self) -> str:
        return f"<EntityRef {self._model.__name__}>"

    @property
    def model(self) -> Type[Any]:
        return self._model

    def navigate(self, info: Any) -> Union['EntityRef', 'CollectionRef']:
        """
        Переход по ассоциации (в том числе объявленной вне класса модели)

        Args:
            info: AssociationInfo или дескриптор AssociationProxy

        Returns:
            EntityRef для одиночной ассоциации, CollectionRef для коллекции
        """
        info = getattr(info, 'info', info)

        if not issubclass(self._model, info.source_model):
            raise QueryError(
                f"Ассоциация {info.describe()} не применима к модели {self._model.__name__}"
            )

        if info.many:
            return CollectionRef(self, info)

        return self._context.join(self, info)

    def resolve_path(self, path: str) -> Any:
        """Разрешение пути вида "employee.address" от этой сущности"""
        value: Any = self
        for part in path.split('.'):
            value = getattr(value, part)
        return value

    def is_none(self) -> ColumnElement:
        """Условие "ассоциированная сущность отсутствует" (для LEFT JOIN)"""
        return and_(*(column.is_(None) for column in self._pk_columns()))

    def is_not_none(self) -> ColumnElement:
        return and_(*(column.is_not(None) for column in self._pk_columns()))

    def entity_columns(self) -> List[ColumnElement]:
        """Все колонки модели с метками по именам полей"""
        return [
            self._selectable.c[column_name].label(field_name)
            for field_name, column_name in self._model._columns.items()
        ]

    def _pk_columns(self) -> List[ColumnElement]:
        return [
            self._selectable.c[self._model._columns[name]]
            for name in self._model._primary_keys
        ]


class CollectionRef:
    """Ссылка на коллекционную ассоциацию; все агрегаты - коррелированные подзапросы"""

    def __init__(self, owner: EntityRef, info: Any, filters: Tuple[Any, ...] = ()):
        self._owner = owner
        self._info = info
        self._filters = filters

    def __repr__(self) -> str:
        return f"<CollectionRef {self._info.describe()}>"

    def where(self, predicate: Any) -> 'CollectionRef':
        """Дополнительный фильтр элементов коллекции"""
        return CollectionRef(self._owner, self._info, self._filters + (predicate,))

    def any(self, predicate: Any = None) -> ColumnElement:
        """EXISTS: есть ли хотя бы один элемент (удовлетворяющий predicate)"""
        return self._subquery(lambda target: [literal_column("1")], predicate).exists()

    def all(self, predicate: Any) -> ColumnElement:
        """NOT EXISTS элемента, для которого predicate не выполнен"""
        return not_(self._subquery(lambda target: [literal_column("1")], predicate, negate=True).exists())

    def count(self, predicate: Any = None) -> ColumnElement:
        return self._subquery(lambda target: [func.count()], predicate).scalar_subquery()

    def max(self, selector: Selector) -> ColumnElement:
        return self._aggregate(func.max, selector)

    def min(self, selector: Selector) -> ColumnElement:
        return self._aggregate(func.min, selector)

    def sum(self, selector: Selector) -> ColumnElement:
        return self._aggregate(func.sum, selector)

    def avg(self, selector: Selector) -> ColumnElement:
        return self._aggregate(func.avg, selector)

    def _aggregate(self, function: Any, selector: Selector) -> ColumnElement:
        return self._subquery(
            lambda target: [function(resolve_value(selector, target))]
        ).scalar_subquery()

    def _subquery(
        self,
        columns: Callable[[EntityRef], List[Any]],
        predicate: Any = None,
        negate: bool = False,
    ) -> Select:
        target_model = self._info.resolve_target()
        context = QueryContext(target_model, target_model.__table__.alias())
        target = context.root()

        clauses = [self._info.join_condition(self._owner, target)]
        clauses.extend(resolve_clause(item, target) for item in self._filters)

        if predicate is not None:
            clause = resolve_clause(predicate, target)
            clauses.append(not_(clause) if negate else clause)

        selected = columns(target)

        # FROM строится последним: навигации внутри predicate добавляют соединения.
        # Всё, что вне собственного FROM, коррелирует с внешним запросом
        return (
            select(*selected)
            .select_from(context.from_clause)
            .where(and_(*clauses))
            .correlate_except(context.from_clause)
        )


def resolve_clause(condition: Any, ref: EntityRef) -> ClauseElement:
    """
    Приведение условия к выражению SQLAlchemy

    Args:
        condition: Функция от EntityRef, Condition, строка SQL или готовое выражение
        ref: Сущность, относительно которой вычисляется условие

    Returns:
        Булево выражение
    """
    if isinstance(condition, ClauseElement):
        return condition

    if isinstance(condition, str):
        return text(condition)

    to_clause = getattr(condition, 'to_clause', None)
    if to_clause is not None:
        return to_clause(ref)

    if callable(condition):
        result = condition(ref)
        if isinstance(result, (EntityRef, CollectionRef)):
            raise QueryError(f"Условие вернуло {result!r} вместо булева выражения")
        return result

    raise QueryError(f"Неподдерживаемый тип условия: {type(condition)}")


def resolve_value(selector: Selector, ref: EntityRef) -> ColumnElement:
    """
    Приведение селектора (путь, функция или выражение) к колонке

    Args:
        selector: "employee.address", lambda ref: ... или выражение SQLAlchemy
        ref: Сущность, относительно которой вычисляется селектор

    Returns:
        Выражение-колонка
    """
    if isinstance(selector, ClauseElement):
        value: Any = selector
    elif isinstance(selector, str):
        value = ref.resolve_path(selector)
    elif callable(selector):
        value = selector(ref)
    else:
        raise QueryError(f"Неподдерживаемый тип селектора: {type(selector)}")

    if isinstance(value, (EntityRef, CollectionRef)):
        raise QueryError(f"Ожидалось выражение-колонка, получено {value!r}")

    return value
