"""
Загрузчик конфигурации из config.yaml.

Порядок: значения по умолчанию (AppConfig) → YAML файл → переменные окружения.
Итог валидируется pydantic схемой (core/config_schema.py).

Предоставляет доступ к настройкам через точку:
    config.redfish.verify_ssl
    config.storage.data_dir
    config.controller.requeue_delay
"""

import os
import logging
from typing import Any, Optional

import yaml

from .core.config_schema import AppConfig, validate_config
from .core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Где искать config.yaml если путь не указан
CONFIG_SEARCH_PATHS = [
    "config.yaml",
    "config.yml",
    ".bmc_inventory.yaml",
]

# Переменная окружения → (секция, ключ)
ENV_OVERRIDES = {
    "INVENTORY_API_URL": ("inventory_api", "url"),
    "BMC_INVENTORY_DATA_DIR": ("storage", "data_dir"),
    "BMC_INVENTORY_STORAGE": ("storage", "backend"),
    "BMC_INVENTORY_LOG_LEVEL": ("logging", "level"),
}


class ConfigSection:
    """Секция конфигурации с доступом через точку."""

    def __init__(self, data: dict = None):
        self._data = data or {}

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return super().__getattribute__(name)
        value = self._data.get(name)
        if isinstance(value, dict):
            return ConfigSection(value)
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Получить значение с дефолтом."""
        return self._data.get(key, default)

    def to_dict(self) -> dict:
        return dict(self._data)

    def __repr__(self) -> str:
        return f"ConfigSection({self._data})"


class Config(ConfigSection):
    """
    Главный класс конфигурации.

    Пример:
        config = load_config("config.yaml")
        config.redfish.timeout      # 30
        config.storage.backend      # "file"
    """

    def __init__(self, config_file: Optional[str] = None):
        super().__init__()
        self.config_file: Optional[str] = None
        self.reload(config_file)

    def _find_config_file(self, config_file: Optional[str]) -> Optional[str]:
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigError("Файл конфигурации не найден", config_file=config_file)
            return config_file
        for path in CONFIG_SEARCH_PATHS:
            if os.path.exists(path):
                return path
        return None

    def _load_yaml(self, config_file: str) -> dict:
        """Загружает настройки из YAML файла."""
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Ошибка разбора YAML: {e}", config_file=config_file)

        if not isinstance(yaml_data, dict):
            raise ConfigError("Корень конфигурации должен быть словарём", config_file=config_file)

        logger.debug(f"Конфигурация загружена из {config_file}")
        return yaml_data

    def _apply_env(self, data: dict) -> None:
        """Переопределения из переменных окружения."""
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                data.setdefault(section, {})[key] = value

    def reload(self, config_file: Optional[str] = None) -> None:
        """Перечитывает конфигурацию."""
        data = AppConfig().model_dump()
        self.config_file = self._find_config_file(config_file)
        if self.config_file:
            _merge_dict(data, self._load_yaml(self.config_file))
        self._apply_env(data)

        validated = validate_config(data, config_file=self.config_file or "config.yaml")
        self._data = validated.model_dump()

    def model(self) -> AppConfig:
        """Валидированная pydantic модель."""
        return AppConfig(**self._data)


def _merge_dict(base: dict, override: dict) -> None:
    """Рекурсивно мержит словари."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value


def load_config(config_file: Optional[str] = None) -> Config:
    """
    Загружает конфигурацию из файла.

    Args:
        config_file: Путь к YAML файлу (опционально)

    Returns:
        Config: Объект конфигурации

    Raises:
        ConfigError: Файл не найден, не разбирается или не проходит валидацию
    """
    return Config(config_file)
