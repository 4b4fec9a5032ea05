"""
Типизированные исключения для BMC Inventory.

Иерархия:
    InventoryError (базовый)
    ├── DiscoveryError (обход Redfish не удался целиком)
    │   ├── RedfishError (HTTP/JSON ошибка отдельного запроса)
    │   └── EmptyResultError (обход не нашёл ни одного компонента)
    ├── NormalizationError (ошибка создания записей в хранилище)
    ├── PersistenceError (не удалось сохранить фазу snapshot)
    ├── InvalidResourceError (ресурс не похож на Snapshot)
    ├── InvalidPayloadError (rawData snapshot не разбирается)
    ├── OperationCancelledError (операция отменена)
    └── ConfigError (конфигурация)

DecodeWarning: категория предупреждения, не исключение:
ветка обхода пропущена, обход продолжается.

Пример использования:
    from bmc_inventory.core.exceptions import DiscoveryError, EmptyResultError

    try:
        result = walker.discover("10.0.0.5", creds)
    except EmptyResultError as e:
        logger.error(f"BMC ничего не вернул: {e.endpoint}")
    except DiscoveryError as e:
        logger.error(f"Обход Redfish: {e}")
"""

from typing import Optional, Any


class InventoryError(Exception):
    """
    Базовое исключение для всех ошибок BMC Inventory.

    Attributes:
        message: Описание ошибки
        details: Дополнительные детали (dict)
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> dict:
        """Сериализация для логов/отчётов."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# === Discovery Errors ===

class DiscoveryError(InventoryError):
    """
    Обход Redfish не удался: корневая коллекция недоступна или не разбирается.

    Attributes:
        endpoint: Хост BMC
        cause: Исходное исключение (если есть)
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[dict] = None,
    ):
        self.endpoint = endpoint
        self.cause = cause
        details = details or {}
        if endpoint:
            details["endpoint"] = endpoint
        if cause is not None:
            details["cause"] = format_error_for_log(cause)
        super().__init__(message, details)


class RedfishError(DiscoveryError):
    """
    Ошибка одного Redfish запроса (сеть, HTTP статус, невалидный JSON).

    Пример:
        raise RedfishError("Unexpected status", endpoint="10.0.0.5",
                           path="/Systems", status_code=401)
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.path = path
        self.status_code = status_code
        details = {}
        if path:
            details["path"] = path
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, endpoint=endpoint, cause=cause, details=details)

    @property
    def is_connection_error(self) -> bool:
        """Сетевая ошибка (нет HTTP ответа вообще)."""
        # requests.RequestException наследует IOError
        return self.status_code is None and isinstance(self.cause, OSError)


class EmptyResultError(DiscoveryError):
    """
    Обход завершился, но не нашёл ни одного компонента.

    Пустой BMC почти всегда означает проблему подключения или протокола,
    а не реально пустой сервер.
    """
    pass


class DecodeWarning(UserWarning):
    """
    Некритичная проблема обхода: коллекция или компонент пропущены.

    Не выбрасывается, текст попадает в лог и в DiscoveryResult.warnings.
    """
    pass


# === Reconcile Errors ===

class NormalizationError(InventoryError):
    """
    Ошибка create/update_status при записи графа в хранилище.

    Attributes:
        source_uri: Redfish путь записи на которой упали
        kind: Тип компонента
    """

    def __init__(
        self,
        message: str,
        source_uri: Optional[str] = None,
        kind: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.source_uri = source_uri
        self.kind = kind
        self.cause = cause
        details = {}
        if source_uri:
            details["source_uri"] = source_uri
        if kind:
            details["kind"] = kind
        if cause is not None:
            details["cause"] = format_error_for_log(cause)
        super().__init__(message, details)


class PersistenceError(InventoryError):
    """
    Не удалось записать snapshot. Фаза считается неизменённой, нужен retry.

    Attributes:
        uid: ID ресурса
        phase: Фаза которую пытались записать
    """

    def __init__(
        self,
        message: str,
        uid: Optional[str] = None,
        phase: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.uid = uid
        self.phase = phase
        self.cause = cause
        details = {}
        if uid:
            details["uid"] = uid
        if phase:
            details["phase"] = phase
        if cause is not None:
            details["cause"] = format_error_for_log(cause)
        super().__init__(message, details)


class InvalidResourceError(InventoryError):
    """
    Reconcile вызван для ресурса не в форме Snapshot. Повтор бесполезен.

    Пример:
        raise InvalidResourceError("Snapshot not found", uid="ds-1234")
    """

    def __init__(self, message: str, uid: Optional[str] = None, details: Optional[dict] = None):
        self.uid = uid
        details = details or {}
        if uid:
            details["uid"] = uid
        super().__init__(message, details)


class InvalidPayloadError(InventoryError):
    """Payload (ответ Redfish или rawData snapshot) не соответствует схеме."""
    pass


class OperationCancelledError(InventoryError):
    """Операция прервана внешним сигналом отмены."""

    def __init__(self, message: str = "Operation cancelled", operation: Optional[str] = None):
        self.operation = operation
        details = {"operation": operation} if operation else None
        super().__init__(message, details)


# === Config Errors ===

class ConfigError(InventoryError):
    """
    Ошибка конфигурации.

    Attributes:
        config_file: Путь к файлу конфигурации
        key: Ключ конфигурации с ошибкой

    Пример:
        raise ConfigError("Missing required field", config_file="config.yaml", key="storage.data_dir")
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        key: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.config_file = config_file
        self.key = key
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        if key:
            details["key"] = key
        super().__init__(message, details)


# === Utility Functions ===

def format_error_for_log(error: BaseException) -> str:
    """
    Форматирует ошибку для вывода в лог.

    Args:
        error: Исключение

    Returns:
        str: Отформатированная строка ошибки
    """
    if isinstance(error, InventoryError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"


def is_retryable(error: BaseException) -> bool:
    """
    Проверяет, можно ли повторить reconcile после ошибки.

    Args:
        error: Исключение

    Returns:
        bool: True если можно retry
    """
    if isinstance(error, RedfishError):
        return error.is_connection_error
    return isinstance(error, PersistenceError)
