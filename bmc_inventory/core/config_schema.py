"""
Pydantic схемы для валидации config.yaml.

Валидация происходит при загрузке конфигурации.
Ошибки валидации выбрасывают ConfigError.

Пример использования:
    from bmc_inventory.core.config_schema import validate_config

    config_dict = yaml.safe_load(open("config.yaml"))
    validated = validate_config(config_dict)  # raises ConfigError on failure
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from .exceptions import ConfigError


class RedfishConfig(BaseModel):
    """Настройки обхода Redfish."""
    timeout: int = Field(default=30, ge=1, le=300)
    # BMC почти всегда с self-signed сертификатом
    verify_ssl: bool = False
    base_path: str = "/redfish/v1"


class InventoryApiConfig(BaseModel):
    """Настройки inventory API (storage.backend = api)."""
    url: str = "http://localhost:8081"
    timeout: int = Field(default=30, ge=1, le=300)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Проверяет что URL валидный."""
        if v and not v.startswith(("http://", "https://")):
            raise PydanticCustomError(
                "invalid_url",
                "URL inventory API должен начинаться с http:// или https://",
            )
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Хранилище записей."""
    backend: str = Field(default="file", pattern="^(memory|file|api)$")
    data_dir: str = "./data"


class ControllerConfig(BaseModel):
    """Очередь reconcile."""
    workers: int = Field(default=2, ge=1, le=32)
    requeue_delay: float = Field(default=1.0, ge=0)
    max_retries: int = Field(default=3, ge=0, le=20)
    retry_delay: float = Field(default=2.0, ge=0, le=300)


class ServerConfig(BaseModel):
    """HTTP API."""
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Настройки логирования."""
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_format: bool = False
    console: bool = True
    file_path: Optional[str] = None
    rotation: str = Field(default="size", pattern="^(size|time)$")
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)  # min 1KB
    backup_count: int = Field(default=5, ge=1, le=100)
    when: str = "midnight"
    interval: int = Field(default=1, ge=1)


class AppConfig(BaseModel):
    """Полная конфигурация приложения."""
    redfish: RedfishConfig = Field(default_factory=RedfishConfig)
    inventory_api: InventoryApiConfig = Field(default_factory=InventoryApiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = False


def validate_config(config_dict: dict, config_file: str = "config.yaml") -> AppConfig:
    """
    Валидирует словарь конфигурации.

    Args:
        config_dict: Словарь из YAML
        config_file: Имя файла для сообщения об ошибке

    Returns:
        AppConfig: Валидированная конфигурация

    Raises:
        ConfigError: При ошибке валидации
    """
    try:
        return AppConfig(**config_dict)
    except Exception as e:
        # Форматируем ошибку Pydantic в читаемый вид
        error_msg = str(e)
        key = None
        if hasattr(e, "errors"):
            errors = e.errors()
            if errors:
                first_error = errors[0]
                key = ".".join(str(x) for x in first_error.get("loc", []))
                msg = first_error.get("msg", "Unknown error")
                error_msg = f"{key}: {msg}"

        raise ConfigError(
            message=f"Ошибка валидации конфигурации: {error_msg}",
            config_file=config_file,
            key=key,
        )
