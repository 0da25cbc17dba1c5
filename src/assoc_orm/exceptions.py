"""
Кастомные исключения для assoc-orm
"""

class AssocORMError(Exception):
    """Базовое исключение для всех ошибок assoc-orm"""
    pass

class NoResultFound(AssocORMError):
    """Исключение, когда запрос не вернул результатов"""
    pass

class MultipleResultsFound(AssocORMError):
    """Исключение, когда запрос вернул несколько результатов, а ожидался один"""
    pass

class SessionError(AssocORMError):
    """Ошибка сессии (не подключена, уже закрыта и т.д.)"""
    pass

class QueryError(AssocORMError):
    """Ошибка построения или выполнения запроса"""
    pass

class AssociationError(AssocORMError):
    """Ошибка в описании или загрузке ассоциаций между моделями"""
    pass

class RegistrationError(AssocORMError):
    """Ошибка регистрации модели в реестре"""
    pass

class ConfigurationError(AssocORMError):
    """Ошибка конфигурации подключения"""
    pass
