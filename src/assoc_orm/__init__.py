"""
assoc-orm: ассоциации между моделями поверх SQLAlchemy Core и SQLite

Основные компоненты:
- DataSession: Подключение к БД и выполнение запросов
- Query: Построитель запросов с навигацией по ассоциациям
- associations: Описание ассоциаций между моделями
"""

from .associations import (
    AssociationInfo, AssociationProxy, association, external_association, many_to_one, one_to_many
)
from .config import ConnectionStringSettings, DataSettings, get_default_settings, set_default_settings
from .exceptions import (
    AssocORMError, AssociationError, ConfigurationError, MultipleResultsFound, NoResultFound,
    QueryError, RegistrationError, SessionError
)
from .mapping import Entity, column
from .query import Query
from .registry import ModelRegistry, default_registry, register_model
from .session import DataSession, dispose_engines
from .tracing import set_trace_writer, turn_trace_switch_on

__version__ = "0.1.0"
__all__ = [
    "DataSession",
    "dispose_engines",
    "Query",
    "association",
    "external_association",
    "one_to_many",
    "many_to_one",
    "AssociationInfo",
    "AssociationProxy",
    "Entity",
    "column",
    "register_model",
    "ModelRegistry",
    "default_registry",
    "ConnectionStringSettings",
    "DataSettings",
    "get_default_settings",
    "set_default_settings",
    "set_trace_writer",
    "turn_trace_switch_on",
    "AssocORMError",
    "NoResultFound",
    "MultipleResultsFound",
    "SessionError",
    "QueryError",
    "AssociationError",
    "RegistrationError",
    "ConfigurationError",
]
