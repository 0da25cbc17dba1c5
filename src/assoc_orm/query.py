"""
Query builder для assoc-orm
"""

from typing import (
    TYPE_CHECKING, Any, Generic, List, Optional, Tuple, Type, TypeVar, Union, cast
)

from sqlalchemy import func, select
from sqlalchemy.sql.elements import ClauseElement
from sqlalchemy.sql.selectable import Select

from .exceptions import MultipleResultsFound, NoResultFound, QueryError
from .expressions import EntityRef, QueryContext, resolve_clause, resolve_value
from .utils.sql_builder import Condition, compile_statement

if TYPE_CHECKING:
    from .session import DataSession

T = TypeVar('T')


class Query(Generic[T]):
    """Построитель запросов с цепочным интерфейсом"""

    def __init__(self, session: 'DataSession', model: Type[T]):
        """
        Инициализация Query builder

        Args:
            session: Сессия DataSession
            model: Класс модели (зарегистрированный dataclass)
        """
        self._session = session
        self._model = model

        # Параметры запроса
        self._where_conditions: List[Any] = []
        self._order_by: List[Any] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._columns: Optional[List[Tuple[str, Any]]] = None
        self._distinct: bool = False
        self._includes: List[str] = []

    def filter(self, *conditions: Any) -> 'Query[T]':
        """
        Добавление условий фильтрации

        Args:
            *conditions: Функции от корневой сущности (lambda order: ...),
                объекты Condition, выражения SQLAlchemy или строки SQL

        Returns:
            self для цепочных вызовов
        """
        for cond in conditions:
            if isinstance(cond, (str, Condition, ClauseElement)) or callable(cond):
                self._where_conditions.append(cond)
            else:
                raise QueryError(f"Неподдерживаемый тип условия: {type(cond)}")

        return self

    def filter_by(self, **kwargs) -> 'Query[T]':
        """
        Фильтрация по равенству полей (удобный синтаксис)

        Args:
            **kwargs: Пары поле=значение

        Returns:
            self для цепочных вызовов
        """
        for field, value in kwargs.items():
            self._where_conditions.append(Condition(field, "=", value))

        return self

    def order_by(self, *columns: Any) -> 'Query[T]':
        """
        Указание сортировки

        Args:
            *columns: Пути полей ("order_date DESC", "-order_date",
                "employee.address") или функции от корневой сущности

        Returns:
            self для цепочных вызовов
        """
        self._order_by.extend(columns)
        return self

    def limit(self, limit: int) -> 'Query[T]':
        """
        Ограничение количества результатов

        Args:
            limit: Максимальное количество строк

        Returns:
            self для цепочных вызовов
        """
        if limit < 0:
            raise QueryError("limit не может быть отрицательным")

        self._limit = limit
        return self

    def offset(self, offset: int) -> 'Query[T]':
        """
        Смещение результатов (для пагинации)

        Args:
            offset: Количество пропускаемых строк

        Returns:
            self для цепочных вызовов
        """
        if offset < 0:
            raise QueryError("offset не может быть отрицательным")

        self._offset = offset
        return self

    def select(self, *columns: str, **labelled: Any) -> 'Query[T]':
        """
        Проекция вместо загрузки сущностей

        Позиционные аргументы - пути полей (метка = последний элемент пути),
        именованные - метка=селектор (функция, путь или выражение).

        Args:
            *columns: Пути вида "order_id" или "employee.address"
            **labelled: Метка -> селектор

        Returns:
            self для цепочных вызовов
        """
        if not columns and not labelled:
            raise QueryError("Не указаны колонки для выборки")

        selected: List[Tuple[str, Any]] = [
            (path.rsplit('.', 1)[-1], path) for path in columns
        ]
        selected.extend(labelled.items())

        labels = [label for label, _ in selected]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise QueryError(f"Повторяющиеся имена колонок в проекции: {', '.join(duplicates)}")

        self._columns = selected
        return self

    def distinct(self) -> 'Query[T]':
        """
        Включение DISTINCT в запрос

        Returns:
            self для цепочных вызовов
        """
        self._distinct = True
        return self

    def include(self, *paths: str) -> 'Query[T]':
        """
        Жадная загрузка ассоциаций (пути через точку: "details", "employee")

        Returns:
            self для цепочных вызовов
        """
        self._includes.extend(paths)
        return self

    async def all(self) -> List[Any]:
        """
        Выполнение запроса и возврат всех результатов

        Returns:
            Список объектов модели или строк проекции (sqlalchemy Row)
        """
        if self._columns is not None and self._includes:
            raise QueryError("include() нельзя сочетать с проекцией select()")

        statement = self._build_query()
        result = await self._session.execute(statement)
        rows = result.all()

        if self._columns is not None:
            return list(rows)

        instances: List[T] = [
            self._session._materialize(self._model, row._mapping) for row in rows
        ]

        for path in self._includes:
            await self._session.include(instances, path)

        return instances

    async def first(self) -> Optional[Any]:
        """
        Возврат первого результата или None

        Returns:
            Первый объект модели или None
        """
        self._limit = 1
        results = await self.all()
        return results[0] if results else None

    async def one(self) -> Any:
        """
        Возврат одного результата с проверкой уникальности

        Returns:
            Единственный объект модели

        Raises:
            NoResultFound: Если нет результатов
            MultipleResultsFound: Если больше одного результата
        """
        results = await self.all()

        if not results:
            raise NoResultFound(f"Запрос не вернул результатов для модели {self._model.__name__}")

        if len(results) > 1:
            raise MultipleResultsFound(
                f"Запрос вернул {len(results)} результатов, ожидался один для модели {self._model.__name__}"
            )

        return results[0]

    async def one_or_none(self) -> Optional[Any]:
        """
        Возврат одного результата или None

        Raises:
            MultipleResultsFound: Если больше одного результата
        """
        results = await self.all()

        if len(results) > 1:
            raise MultipleResultsFound(
                f"Запрос вернул {len(results)} результатов, ожидался один для модели {self._model.__name__}"
            )

        return results[0] if results else None

    async def count(self) -> int:
        """
        Подсчет количества строк, соответствующих условиям

        Returns:
            Количество строк
        """
        statement = select(func.count()).select_from(self._build_query().subquery())
        result = await self._session.execute(statement)
        return cast(int, result.scalar_one())

    def to_sql(self) -> str:
        """SQL текст запроса (диалект SQLite, с параметрами-заполнителями)"""
        sql, _ = compile_statement(self._build_query())
        return sql

    def _build_query(self) -> Select:
        """
        Построение SELECT по условиям, проекции и сортировке

        Returns:
            Выражение SQLAlchemy Select
        """
        self._model._registry.validate()

        context = QueryContext(self._model)
        root = context.root()

        where = [resolve_clause(cond, root) for cond in self._where_conditions]

        if self._columns is None:
            columns = root.entity_columns()
        else:
            columns = [
                resolve_value(selector, root).label(label)
                for label, selector in self._columns
            ]

        order = [self._resolve_order(item, root) for item in self._order_by]

        # FROM берётся после разрешения всех выражений: навигации добавляют JOIN
        statement = select(*columns).select_from(context.from_clause)

        if where:
            statement = statement.where(*where)
        if order:
            statement = statement.order_by(*order)
        if self._distinct:
            statement = statement.distinct()
        if self._limit is not None:
            statement = statement.limit(self._limit)
        if self._offset is not None:
            statement = statement.offset(self._offset)

        return statement

    @staticmethod
    def _resolve_order(item: Union[str, Any], root: EntityRef) -> Any:
        if not isinstance(item, str):
            return resolve_value(item, root)

        path = item.strip()
        descending = False

        if path.startswith('-'):
            path, descending = path[1:], True
        else:
            parts = path.rsplit(None, 1)
            if len(parts) == 2 and parts[1].upper() in ("ASC", "DESC"):
                path, descending = parts[0], parts[1].upper() == "DESC"

        column = resolve_value(path, root)
        return column.desc() if descending else column.asc()

    # Магические методы для удобства
    def __getattr__(self, name: str) -> Any:
        """
        Поддержка цепочек вида .filter_by_name("value")
        """
        if name.startswith('filter_by_'):
            field_name = name[10:]  # Убираем 'filter_by_'

            def filter_by_value(value: Any) -> 'Query[T]':
                self._where_conditions.append(Condition(field_name, "=", value))
                return self

            return filter_by_value

        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")
