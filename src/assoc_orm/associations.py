"""
Система ассоциаций между моделями (associations)
"""

import collections.abc
import types
from dataclasses import dataclass, field
from typing import (
    Any, Callable, ForwardRef, Optional, Sequence, Tuple, Type, Union, get_args, get_origin
)

from sqlalchemy import and_

from .exceptions import AssociationError
from .registry import default_registry

KeySpec = Union[str, Sequence[str]]

_COLLECTION_ORIGINS = {
    list, tuple, set, frozenset,
    collections.abc.Sequence,
    collections.abc.Iterable,
    collections.abc.Collection,
    collections.abc.Set,
}

_UNION_ORIGINS = {Union, getattr(types, 'UnionType', Union)}


def _split_keys(keys: Optional[KeySpec]) -> Tuple[str, ...]:
    """Нормализация ключа: "A,B" или ("A", "B") -> ("A", "B")"""
    if keys is None:
        return ()
    if isinstance(keys, str):
        return tuple(part.strip() for part in keys.split(',') if part.strip())
    return tuple(keys)


def _target_of(type_arg: Any) -> Union[str, Type[Any]]:
    if isinstance(type_arg, ForwardRef):
        return type_arg.__forward_arg__
    if isinstance(type_arg, (str, type)):
        return type_arg
    raise AssociationError(f"Не удалось определить целевую модель из типа {type_arg!r}")


def infer_cardinality(declared_type: Any) -> Tuple[Union[str, Type[Any]], bool]:
    """
    Определение целевой модели и кардинальности по объявленному типу

    List[X], Sequence[X] и т.п. дают коллекцию, X и Optional[X] - одиночную ссылку.

    Args:
        declared_type: Объявленный тип навигационного свойства

    Returns:
        Кортеж (целевая модель или её имя, является ли коллекцией)
    """
    origin = get_origin(declared_type)

    if origin in _UNION_ORIGINS:
        args = [arg for arg in get_args(declared_type) if arg is not type(None)]
        if len(args) != 1:
            raise AssociationError(f"Неоднозначный тип ассоциации: {declared_type!r}")
        return infer_cardinality(args[0])

    if origin in _COLLECTION_ORIGINS:
        args = get_args(declared_type)
        if not args:
            raise AssociationError(
                f"Для коллекции {declared_type!r} не указан тип элементов"
            )
        return _target_of(args[0]), True

    return _target_of(declared_type), False


@dataclass
class AssociationInfo:
    """Информация об ассоциации между моделями"""

    declared_type: Any
    this_key: Optional[KeySpec] = None
    other_key: Optional[KeySpec] = None
    predicate: Optional[Callable[[Any, Any], Any]] = None
    can_be_null: bool = True
    order_by: Optional[str] = None

    source_model: Optional[Type[Any]] = None
    name: Optional[str] = None

    target_model: Union[str, Type[Any]] = field(init=False)
    many: bool = field(init=False)
    this_keys: Tuple[str, ...] = field(init=False)
    other_keys: Tuple[str, ...] = field(init=False)

    def __post_init__(self):
        self.this_keys = _split_keys(self.this_key)
        self.other_keys = _split_keys(self.other_key)

        has_keys = bool(self.this_keys or self.other_keys)

        if not has_keys and self.predicate is None:
            raise AssociationError(
                "Для ассоциации должна быть указана пара ключей (this_key/other_key) или predicate"
            )

        if has_keys and self.predicate is not None:
            raise AssociationError(
                "Ассоциация не может одновременно задаваться ключами и predicate"
            )

        if has_keys and (not self.this_keys or not self.other_keys):
            raise AssociationError("Должны быть указаны оба ключа: this_key и other_key")

        if len(self.this_keys) != len(self.other_keys):
            raise AssociationError(
                f"Количество полей в this_key ({len(self.this_keys)}) "
                f"и other_key ({len(self.other_keys)}) не совпадает"
            )

        if self.predicate is not None and not callable(self.predicate):
            raise AssociationError("predicate должен быть функцией (source, target) -> условие")

        self.target_model, self.many = infer_cardinality(self.declared_type)

    @property
    def is_key_based(self) -> bool:
        return self.predicate is None

    def describe(self) -> str:
        owner = self.source_model.__name__ if self.source_model else '?'
        return f"{owner}.{self.name}"

    def resolve_target(self) -> Type[Any]:
        """Разрешение имени целевой модели в класс"""
        if isinstance(self.target_model, str):
            registry = getattr(self.source_model, '_registry', default_registry)
            model = registry.get_model(self.target_model)
            if not model:
                raise AssociationError(
                    f"Модель '{self.target_model}' для ассоциации {self.describe()} не найдена в реестре"
                )
            self.target_model = model
        return self.target_model

    def join_condition(self, source: Any, target: Any) -> Any:
        """
        Условие соединения источника и цели

        Args:
            source: Ссылка на сущность-источник (EntityRef)
            target: Ссылка на целевую сущность (EntityRef)

        Returns:
            Булево выражение SQLAlchemy
        """
        if self.predicate is not None:
            return self.predicate(source, target)

        clauses = [
            getattr(source, this_key) == getattr(target, other_key)
            for this_key, other_key in zip(self.this_keys, self.other_keys)
        ]
        return clauses[0] if len(clauses) == 1 else and_(*clauses)


class AssociationProxy:
    """
    Дескриптор навигационного свойства

    Доступ через класс возвращает сам дескриптор (для использования в запросах).
    Загруженное значение кладётся в __dict__ экземпляра и перекрывает дескриптор,
    поэтому до загрузки доступ через экземпляр считается ошибкой.
    """

    def __init__(self, info: AssociationInfo):
        self.info = info

    def __set_name__(self, owner: Type[Any], name: str) -> None:
        self.info.source_model = owner
        self.info.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self

        raise AssociationError(
            f"Ассоциация {self.info.describe()} не загружена. "
            "Используйте жадную загрузку через .include() или DataSession.load()"
        )

    def __repr__(self) -> str:
        kind = 'many' if self.info.many else 'one'
        return f"<AssociationProxy {self.info.describe()} ({kind})>"


def set_loaded(instance: Any, info: AssociationInfo, value: Any) -> None:
    """Сохранение загруженного значения ассоциации в экземпляре"""
    instance.__dict__[info.name] = value


def is_loaded(instance: Any, name: str) -> bool:
    """Проверка, загружена ли ассоциация у экземпляра"""
    return name in instance.__dict__


def association(
    declared_type: Any,
    this_key: Optional[KeySpec] = None,
    other_key: Optional[KeySpec] = None,
    predicate: Optional[Callable[[Any, Any], Any]] = None,
    can_be_null: bool = True,
    order_by: Optional[str] = None,
) -> Any:
    """
    Фабрика для объявления ассоциаций в теле класса модели

    Args:
        declared_type: Тип свойства (X, Optional[X] или List[X])
        this_key: Поле(я) модели-источника
        other_key: Поле(я) целевой модели
        predicate: Функция (source, target) -> условие соединения
        can_be_null: Может ли одиночная ассоциация отсутствовать
        order_by: Поле целевой модели для сортировки коллекции при загрузке

    Returns:
        Дескриптор AssociationProxy
    """
    info = AssociationInfo(
        declared_type=declared_type,
        this_key=this_key,
        other_key=other_key,
        predicate=predicate,
        can_be_null=can_be_null,
        order_by=order_by,
    )

    return AssociationProxy(info)


def one_to_many(
    target_model: Union[str, Type[Any]],
    this_key: KeySpec,
    other_key: KeySpec,
    **kwargs
) -> Any:
    """Создание ассоциации один-ко-многим"""
    return association(
        Sequence[target_model],
        this_key=this_key,
        other_key=other_key,
        **kwargs
    )


def many_to_one(
    target_model: Union[str, Type[Any]],
    this_key: KeySpec,
    other_key: KeySpec,
    can_be_null: bool = True,
    **kwargs
) -> Any:
    """Создание ассоциации многие-к-одному"""
    return association(
        target_model,
        this_key=this_key,
        other_key=other_key,
        can_be_null=can_be_null,
        **kwargs
    )


def external_association(
    source_model: Type[Any],
    name: str,
    declared_type: Any,
    **kwargs
) -> AssociationInfo:
    """
    Объявление ассоциации вне класса модели

    Такая ассоциация не появляется как атрибут модели, но доступна в запросах
    через EntityRef.navigate() и для загрузки через DataSession.load().

    Args:
        source_model: Модель-источник
        name: Имя ассоциации
        declared_type: Тип навигации (X или List[X])
        **kwargs: Параметры AssociationInfo

    Returns:
        Зарегистрированный AssociationInfo
    """
    info = AssociationInfo(declared_type, source_model=source_model, name=name, **kwargs)
    registry = getattr(source_model, '_registry', default_registry)
    registry.register_external(info)
    return info
