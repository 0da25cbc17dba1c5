"""
Конфигурация подключений (именованные строки подключения)
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

# Имена провайдеров, которые сводятся к асинхронному драйверу SQLite
PROVIDER_ALIASES = {
    "sqlite": "sqlite+aiosqlite",
    "SQLite": "sqlite+aiosqlite",
    "System.Data.SQLite": "sqlite+aiosqlite",
    "sqlite+aiosqlite": "sqlite+aiosqlite",
}


class ConnectionStringSettings(BaseModel):
    """Именованная строка подключения"""

    name: str
    provider_name: str = "sqlite"
    connection_string: str

    @property
    def driver(self) -> str:
        driver = PROVIDER_ALIASES.get(self.provider_name)
        if driver is None:
            raise ConfigurationError(
                f"Неизвестный провайдер '{self.provider_name}' для подключения '{self.name}'"
            )
        return driver

    @property
    def database_path(self) -> str:
        """Путь к файлу БД ("Data Source=..." или просто путь)"""
        value = self.connection_string.strip()
        for part in value.split(';'):
            key, sep, path = part.partition('=')
            if sep and key.strip().lower() in ("data source", "datasource"):
                return path.strip()
        return value

    @property
    def url(self) -> str:
        path = self.database_path
        if path != ":memory:":
            path = Path(path).as_posix()
        return f"{self.driver}:///{path}"


class DataSettings(BaseSettings):
    """Настройки доступа к данным (читаются из окружения с префиксом ASSOC_ORM_)"""

    default_configuration: str = "Northwind"
    connection_strings: List[ConnectionStringSettings] = [
        ConnectionStringSettings(
            name="Northwind",
            provider_name="sqlite",
            connection_string="Data/Northwind.sqlite",
        )
    ]
    trace: bool = False
    echo: bool = False

    model_config = SettingsConfigDict(
        env_prefix="ASSOC_ORM_", env_file=".env", extra="ignore"
    )

    def get_connection(self, name: Optional[str] = None) -> ConnectionStringSettings:
        """
        Получение строки подключения по имени конфигурации

        Args:
            name: Имя конфигурации (None = default_configuration)

        Returns:
            Настройки подключения

        Raises:
            ConfigurationError: Если конфигурация не найдена
        """
        name = name or self.default_configuration
        for connection in self.connection_strings:
            if connection.name == name:
                return connection

        known = ", ".join(c.name for c in self.connection_strings) or "-"
        raise ConfigurationError(f"Конфигурация '{name}' не найдена (доступны: {known})")


def sqlite_settings(path: str, name: str = "Northwind", **kwargs) -> DataSettings:
    """Настройки с единственным подключением к файлу SQLite"""
    return DataSettings(
        default_configuration=name,
        connection_strings=[ConnectionStringSettings(name=name, connection_string=str(path))],
        **kwargs
    )


_default_settings: Optional[DataSettings] = None


def set_default_settings(settings: Optional[DataSettings]) -> None:
    """Выбор настроек по умолчанию для всего процесса (None - сброс)"""
    global _default_settings
    _default_settings = settings


def get_default_settings() -> DataSettings:
    """Настройки по умолчанию (создаются из окружения при первом обращении)"""
    global _default_settings
    if _default_settings is None:
        _default_settings = DataSettings()
    return _default_settings
