"""
Модуль управления учётными данными BMC.

Одна пара логин/пароль используется для всех Redfish запросов к одному BMC
(HTTP Basic Auth).

Источники (по порядку):
- Явная передача
- Переменные окружения BMC_USERNAME / BMC_PASSWORD
- Интерактивный ввод (getpass)

Пример использования:
    creds = CredentialsManager().get_credentials()
    walker.discover("10.0.0.5", creds)
"""

import os
import logging
from getpass import getpass
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Credentials:
    """
    Контейнер для учётных данных BMC.

    Attributes:
        username: Имя пользователя
        password: Пароль
    """
    username: str
    password: str

    def as_auth(self) -> Tuple[str, str]:
        """Кортеж для requests (auth=...)."""
        return (self.username, self.password)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class CredentialsManager:
    """
    Менеджер учётных данных.

    Example:
        # Автоматический выбор источника
        creds = CredentialsManager().get_credentials()

        # Явная передача
        creds = CredentialsManager(username="root", password="secret").get_credentials()
    """

    ENV_USERNAME = "BMC_USERNAME"
    ENV_PASSWORD = "BMC_PASSWORD"

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self._credentials: Optional[Credentials] = None

        if username and password:
            self._credentials = Credentials(username=username, password=password)

    def get_credentials(self, interactive: bool = True) -> Credentials:
        """
        Получает учётные данные.

        Порядок проверки:
        1. Уже закэшированные
        2. Переменные окружения
        3. Интерактивный ввод (если interactive=True)

        Args:
            interactive: Разрешить интерактивный ввод

        Returns:
            Credentials: Объект с учётными данными

        Raises:
            ValueError: Если не удалось получить credentials
        """
        if self._credentials:
            return self._credentials

        env_username = os.getenv(self.ENV_USERNAME)
        env_password = os.getenv(self.ENV_PASSWORD)

        if env_username and env_password:
            logger.info("Используем учётные данные BMC из переменных окружения")
            self._credentials = Credentials(username=env_username, password=env_password)
            return self._credentials

        if interactive:
            logger.info("Запрос учётных данных BMC интерактивно")
            self._credentials = self._prompt_credentials()
            return self._credentials

        raise ValueError(
            "Не удалось получить учётные данные BMC. "
            f"Установите {self.ENV_USERNAME} и {self.ENV_PASSWORD} "
            "или включите интерактивный режим."
        )

    def _prompt_credentials(self) -> Credentials:
        """Запрашивает учётные данные интерактивно."""
        print("\n" + "=" * 50)
        print("Введите учётные данные BMC (Redfish)")
        print("=" * 50)

        username = input("Имя пользователя: ").strip()
        password = getpass("Пароль: ")

        return Credentials(username=username, password=password)
