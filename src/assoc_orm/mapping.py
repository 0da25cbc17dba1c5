"""
Отображение dataclass-моделей на таблицы SQLAlchemy
"""

from dataclasses import field
from typing import Any, ClassVar, Dict, Mapping, Tuple, Type, TypeVar

from sqlalchemy import Table

T = TypeVar('T', bound='Entity')

COLUMN_KEY = 'assoc_orm.column'
PRIMARY_KEY = 'assoc_orm.primary_key'


def column(name: str, *, primary_key: bool = False, default: Any = None) -> Any:
    """
    Описание поля модели, связанного с колонкой таблицы

    Args:
        name: Имя колонки в БД
        primary_key: Входит ли колонка в первичный ключ
        default: Значение по умолчанию

    Returns:
        dataclasses.Field с метаданными колонки
    """
    return field(default=default, metadata={COLUMN_KEY: name, PRIMARY_KEY: primary_key})


class Entity:
    """Базовый класс для моделей (dataclass + __table__)"""

    __table__: ClassVar[Table]

    # Заполняются реестром при регистрации
    _columns: ClassVar[Dict[str, str]] = {}
    _primary_keys: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def from_row(cls: Type[T], row: Mapping[str, Any]) -> T:
        """
        Создание экземпляра из строки результата

        Args:
            row: Отображение имя поля -> значение

        Returns:
            Экземпляр модели
        """
        return cls(**{name: row[name] for name in cls._columns})

    def primary_key_value(self) -> Any:
        """Значение первичного ключа (кортеж для составного ключа)"""
        if len(self._primary_keys) == 1:
            return getattr(self, self._primary_keys[0])

        return tuple(getattr(self, name) for name in self._primary_keys)
