"""
Реализация сессии: подключение, выполнение запросов, identity map и загрузка ассоциаций
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import select, tuple_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .associations import AssociationInfo, set_loaded
from .config import ConnectionStringSettings, DataSettings, get_default_settings
from .exceptions import AssociationError, SessionError
from .expressions import EntityRef, QueryContext
from .query import Query
from .registry import default_registry
from .tracing import is_trace_on, trace_statement
from .utils.sql_builder import compile_statement

logger = logging.getLogger(__name__)

T = TypeVar('T')

_engines: Dict[Tuple[str, bool], AsyncEngine] = {}


def get_engine(connection: ConnectionStringSettings, echo: bool = False) -> AsyncEngine:
    """
    Движок для строки подключения (кэшируется по URL и echo)

    Args:
        connection: Настройки подключения
        echo: Логирование SQL средствами SQLAlchemy

    Returns:
        AsyncEngine
    """
    url = connection.url
    engine = _engines.get((url, echo))
    if engine is None:
        logger.debug("Создание движка для %s (%s)", connection.name, url)
        engine = create_async_engine(url, echo=echo)
        _engines[(url, echo)] = engine
    return engine


async def dispose_engines() -> None:
    """Закрытие всех закэшированных движков"""
    engines = list(_engines.values())
    _engines.clear()
    for engine in engines:
        await engine.dispose()


class DataSession:
    """Сессия чтения данных: одно подключение на время контекста"""

    def __init__(
        self,
        settings: Optional[DataSettings] = None,
        configuration: Optional[str] = None,
        *,
        engine: Optional[AsyncEngine] = None,
    ):
        """
        Инициализация сессии

        Args:
            settings: Настройки (по умолчанию - настройки процесса)
            configuration: Имя конфигурации подключения
            engine: Готовый движок (в обход настроек подключения)
        """
        self._settings = settings or get_default_settings()
        self._configuration = configuration
        self._engine = engine
        self._connection: Optional[AsyncConnection] = None
        self._identity_map: Dict[Type, Dict[Any, Any]] = {}

    async def __aenter__(self):
        """Асинхронный контекстный менеджер"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Закрытие сессии при выходе из контекста"""
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self):
        """Открытие подключения к БД"""
        if self._connection is not None:
            return

        default_registry.validate()

        if self._engine is None:
            connection = self._settings.get_connection(self._configuration)
            path = connection.database_path
            if path != ":memory:" and not Path(path).exists():
                raise SessionError(f"Файл базы данных не найден: {path}")
            self._engine = get_engine(connection, echo=self._settings.echo)

        try:
            self._connection = await self._engine.connect()
        except SQLAlchemyError as e:
            raise SessionError(f"Не удалось открыть подключение: {e}") from e

    async def close(self):
        """Закрытие подключения и очистка ресурсов"""
        try:
            if self._connection is not None:
                await self._connection.close()
        finally:
            self._connection = None
            self._identity_map.clear()

    def query(self, model: Type[T]) -> Query[T]:
        """
        Создание Query builder для модели

        Args:
            model: Класс модели

        Returns:
            Query builder
        """
        return Query(self, model)

    async def execute(self, statement: Any) -> Any:
        """
        Выполнение выражения SQLAlchemy в подключении сессии

        Args:
            statement: Select или другое выражение

        Returns:
            Результат sqlalchemy (CursorResult)
        """
        if self._connection is None:
            raise SessionError("Сессия не подключена (используйте 'async with DataSession()')")

        if self._settings.trace or is_trace_on():
            sql, params = compile_statement(statement)
            trace_statement(sql, params, force=self._settings.trace)

        return await self._connection.execute(statement)

    async def load(self, instance: Any, association: Any) -> Any:
        """
        Явная загрузка ассоциации одного объекта

        Args:
            instance: Экземпляр модели
            association: Имя, дескриптор или AssociationInfo

        Returns:
            Связанный объект, None или список объектов
        """
        info = self._resolve_association(type(instance), association)
        values = await self.load_association([instance], info)
        return values[instance.primary_key_value()]

    async def include(self, instances: Sequence[Any], path: str) -> None:
        """
        Жадная загрузка ассоциаций по пути вида "details" или "details.product"

        Args:
            instances: Экземпляры одной модели
            path: Путь через точку
        """
        current: List[Any] = list(instances)

        for part in path.split('.'):
            if not current:
                return

            info = self._resolve_association(type(current[0]), part)
            values = await self.load_association(current, info)

            next_level: Dict[int, Any] = {}
            for value in values.values():
                if value is None:
                    continue
                for item in (value if info.many else [value]):
                    next_level[id(item)] = item
            current = list(next_level.values())

    async def load_association(self, instances: Sequence[Any], info: AssociationInfo) -> Dict[Any, Any]:
        """
        Загрузка ассоциации для набора объектов одним запросом

        Источник соединяется с целью тем же условием, что и в запросах,
        и фильтруется по первичным ключам переданных объектов.

        Args:
            instances: Экземпляры модели-источника
            info: Описание ассоциации

        Returns:
            Словарь первичный ключ источника -> значение ассоциации
        """
        if not instances:
            return {}

        source_model = info.source_model
        target_model = info.resolve_target()

        context = QueryContext(source_model, source_model.__table__.alias())
        parent = context.root()
        target_alias = target_model.__table__.alias()
        target = EntityRef(context, target_model, target_alias, path=(0,))

        onclause = info.join_condition(parent, target)
        from_clause = context.from_clause.join(target_alias, onclause)

        pk_columns = parent._pk_columns()
        keys = list(dict.fromkeys(instance.primary_key_value() for instance in instances))
        if len(pk_columns) == 1:
            key_clause = pk_columns[0].in_(keys)
        else:
            key_clause = tuple_(*pk_columns).in_(keys)

        if info.order_by:
            order_field = info.order_by.lstrip('-')
            order_column = target_alias.c[target_model._columns[order_field]]
            ordering = [order_column.desc() if info.order_by.startswith('-') else order_column.asc()]
        else:
            ordering = target._pk_columns()

        statement = (
            select(
                *(column.label(f"_parent_{i}") for i, column in enumerate(pk_columns)),
                *target.entity_columns()
            )
            .select_from(from_clause)
            .where(key_clause)
            .order_by(*ordering)
        )

        result = await self.execute(statement)

        grouped: Dict[Any, List[Any]] = {}
        for row in result.all():
            mapping = row._mapping
            parent_key = tuple(mapping[f"_parent_{i}"] for i in range(len(pk_columns)))
            if len(parent_key) == 1:
                parent_key = parent_key[0]
            grouped.setdefault(parent_key, []).append(self._materialize(target_model, mapping))

        registry = getattr(source_model, '_registry', default_registry)
        in_class = registry.get_association(source_model, info.name) is info
        values: Dict[Any, Any] = {}

        for instance in instances:
            key = instance.primary_key_value()
            items = grouped.get(key, [])

            if info.many:
                value: Any = items
            else:
                if len(items) > 1:
                    raise AssociationError(
                        f"Ассоциация {info.describe()} вернула {len(items)} объектов, ожидался один"
                    )
                value = items[0] if items else None
                if value is None and not info.can_be_null:
                    raise AssociationError(
                        f"Ассоциация {info.describe()} не может быть пустой (ключ {key!r})"
                    )

            values[key] = value
            if in_class:
                set_loaded(instance, info, value)

        return values

    def _resolve_association(self, model_cls: Type, association: Any) -> AssociationInfo:
        if isinstance(association, AssociationInfo):
            return association

        info = getattr(association, 'info', None)
        if isinstance(info, AssociationInfo):
            return info

        if isinstance(association, str):
            registry = getattr(model_cls, '_registry', default_registry)
            info = registry.get_association(model_cls, association)
            if info is not None:
                return info
            for external in registry.get_external(model_cls):
                if external.name == association:
                    return external

        raise AssociationError(
            f"Ассоциация {association!r} не найдена у модели {model_cls.__name__}"
        )

    def _materialize(self, model: Type[T], row: Any) -> T:
        """Создание объекта из строки с учётом identity map"""
        instance = model.from_row(row)

        pk_value = instance.primary_key_value()
        cached = self.get_from_identity_map(model, pk_value)

        if cached is not None:
            return cached

        self._add_to_identity_map(instance)
        return instance

    def _add_to_identity_map(self, instance: Any):
        """Добавление объекта в identity map"""
        model_type = type(instance)
        pk_value = instance.primary_key_value()

        if model_type not in self._identity_map:
            self._identity_map[model_type] = {}

        self._identity_map[model_type][pk_value] = instance

    def get_from_identity_map(self, model: Type[T], pk_value: Any) -> Optional[T]:
        """Получение объекта из identity map по первичному ключу"""
        if model in self._identity_map:
            return self._identity_map[model].get(pk_value)
        return None
