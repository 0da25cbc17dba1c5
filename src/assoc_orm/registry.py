"""
Реестр моделей и ассоциаций
"""

import dataclasses
from typing import Any, Dict, List, Optional, Set, Type
from weakref import WeakValueDictionary

from .exceptions import AssociationError, RegistrationError
from .mapping import COLUMN_KEY, PRIMARY_KEY


class ModelRegistry:
    """Реестр зарегистрированных моделей и их ассоциаций"""

    _instances: Dict[str, 'ModelRegistry'] = WeakValueDictionary()

    def __new__(cls, name: str = "default"):
        if name not in cls._instances:
            instance = super().__new__(cls)
            instance._name = name
            instance._models = {}
            instance._model_by_tablename = {}
            instance._associations = {}
            instance._external = []
            instance._validated = False
            cls._instances[name] = instance
        return cls._instances[name]

    @property
    def name(self) -> str:
        return self._name

    def register(self, model_cls: Type) -> None:
        """
        Регистрация модели в реестре

        Модель должна быть dataclass с атрибутом __table__ (sqlalchemy.Table).
        Поля, объявленные через mapping.column(), связываются с колонками,
        дескрипторы ассоциаций из тела класса попадают в таблицу ассоциаций.

        Args:
            model_cls: Класс модели для регистрации
        """
        from .associations import AssociationProxy

        model_name = model_cls.__name__

        if not dataclasses.is_dataclass(model_cls):
            raise RegistrationError(
                f"Модель {model_name} должна быть dataclass (register_model ставится над @dataclass)"
            )

        table = getattr(model_cls, '__table__', None)
        if table is None:
            raise RegistrationError(f"У модели {model_name} не указан __table__")

        columns: Dict[str, str] = {}
        primary_keys: List[str] = []
        for model_field in dataclasses.fields(model_cls):
            column_name = model_field.metadata.get(COLUMN_KEY)
            if column_name is None:
                raise RegistrationError(
                    f"Поле {model_name}.{model_field.name} не связано с колонкой (используйте column())"
                )
            columns[model_field.name] = column_name
            if model_field.metadata.get(PRIMARY_KEY):
                primary_keys.append(model_field.name)

        if not primary_keys:
            raise RegistrationError(f"У модели {model_name} не указан первичный ключ")

        model_cls._columns = columns
        model_cls._primary_keys = tuple(primary_keys)

        associations = {}
        for attr_name, value in vars(model_cls).items():
            if isinstance(value, AssociationProxy):
                associations[attr_name] = value.info

        self._models[model_name] = model_cls
        self._model_by_tablename[table.name] = model_cls
        self._associations[model_cls] = associations
        self._validated = False

        # Устанавливаем обратную ссылку
        setattr(model_cls, '_registry', self)

    def register_external(self, info: Any) -> None:
        """
        Регистрация ассоциации, объявленной вне класса модели

        Args:
            info: AssociationInfo с заполненными source_model и name
        """
        if info.source_model is None or not info.name:
            raise AssociationError("Для внешней ассоциации нужны source_model и name")

        self._external.append(info)
        self._validated = False

    def get_model(self, name: str) -> Optional[Type]:
        """
        Получение модели по имени класса

        Args:
            name: Имя класса модели

        Returns:
            Класс модели или None если не найден
        """
        return self._models.get(name)

    def get_model_by_table(self, table_name: str) -> Optional[Type]:
        """
        Получение модели по имени таблицы

        Args:
            table_name: Имя таблицы в БД

        Returns:
            Класс модели или None если не найден
        """
        return self._model_by_tablename.get(table_name)

    def get_all_models(self) -> Set[Type]:
        """
        Получение всех зарегистрированных моделей

        Returns:
            Множество классов моделей
        """
        return set(self._models.values())

    def get_association(self, model_cls: Type, name: str) -> Optional[Any]:
        """Ассоциация модели по имени навигационного свойства или None"""
        return self._associations.get(model_cls, {}).get(name)

    def get_associations(self, model_cls: Type) -> Dict[str, Any]:
        """Все ассоциации, объявленные в классе модели"""
        return dict(self._associations.get(model_cls, {}))

    def get_external(self, model_cls: Optional[Type] = None) -> List[Any]:
        """Внешние ассоциации (опционально только для указанной модели-источника)"""
        if model_cls is None:
            return list(self._external)
        return [info for info in self._external if info.source_model is model_cls]

    def validate(self) -> None:
        """
        Проверка всех моделей и ассоциаций

        Разрешает целевые модели, проверяет колонки таблиц и поля ключей.
        Вызывается при старте, чтобы ошибки описания не всплывали во время запросов.
        """
        if self._validated:
            return

        for model_cls in self._models.values():
            table_columns = set(model_cls.__table__.c.keys())
            for field_name, column_name in model_cls._columns.items():
                if column_name not in table_columns:
                    raise RegistrationError(
                        f"Колонка '{column_name}' поля {model_cls.__name__}.{field_name} "
                        f"отсутствует в таблице '{model_cls.__table__.name}'"
                    )

        all_associations = [
            info
            for associations in self._associations.values()
            for info in associations.values()
        ]
        all_associations.extend(self._external)

        for info in all_associations:
            self._validate_association(info)

        self._validated = True

    def _validate_association(self, info: Any) -> None:
        source = info.source_model
        if source not in self._associations:
            raise AssociationError(
                f"Модель-источник ассоциации {info.describe()} не зарегистрирована"
            )

        target = info.resolve_target()
        if getattr(target, '_registry', None) is not self:
            raise AssociationError(
                f"Целевая модель {target.__name__} ассоциации {info.describe()} не зарегистрирована"
            )

        for key in info.this_keys:
            if key not in source._columns:
                raise AssociationError(
                    f"Поле '{key}' (this_key) отсутствует в модели {source.__name__}"
                )

        for key in info.other_keys:
            if key not in target._columns:
                raise AssociationError(
                    f"Поле '{key}' (other_key) отсутствует в модели {target.__name__}"
                )

        if info.order_by and info.order_by.lstrip('-') not in target._columns:
            raise AssociationError(
                f"Поле сортировки '{info.order_by}' отсутствует в модели {target.__name__}"
            )


# Глобальный реестр по умолчанию
default_registry = ModelRegistry()


# Декоратор для автоматической регистрации
def register_model(model_cls: Type) -> Type:
    """
    Декоратор для автоматической регистрации модели

    Args:
        model_cls: Класс модели

    Returns:
        Тот же класс с регистрацией
    """
    default_registry.register(model_cls)
    return model_cls
