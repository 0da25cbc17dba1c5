"""
Трассировка выполняемых SQL запросов
"""

import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("assoc_orm.sql")

TraceWriter = Callable[[str, str], None]


def _log_trace_line(message: str, category: str) -> None:
    logger.debug("[%s] %s", category, message)


_enabled = False
_writer: TraceWriter = _log_trace_line


def turn_trace_switch_on(enabled: bool = True) -> None:
    """Включение (или выключение) трассировки для всего процесса"""
    global _enabled
    _enabled = enabled


def is_trace_on() -> bool:
    return _enabled


def set_trace_writer(writer: Optional[TraceWriter]) -> None:
    """
    Установка получателя строк трассировки

    Args:
        writer: Функция (строка, категория); None возвращает запись в лог assoc_orm.sql
    """
    global _writer
    _writer = writer or _log_trace_line


def trace_statement(sql: str, params: Dict[str, Any], force: bool = False) -> None:
    """Одна строка трассировки на выполняемый запрос"""
    if not (_enabled or force):
        return

    line = sql if not params else f"{sql}\n-- params: {params}"
    _writer(line, "query")
