"""
Контекст выполнения и сигнал отмены.

RunContext прокидывается через слои приложения (CLI → Walker → Reconciler)
и даёт run_id для логов.

CancelToken — внешний сигнал отмены. Проверяется в каждой точке I/O:
перед каждым Redfish запросом и перед каждой записью в хранилище.

Пример использования:
    ctx = RunContext.create(command="submit")
    set_current_context(ctx)

    cancel = CancelToken()
    walker.discover(host, creds, cancel=cancel)
    # из другого потока:
    cancel.cancel()
"""

import threading
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Literal

from .exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

TriggerSource = Literal["cli", "api", "controller", "test"]


@dataclass
class RunContext:
    """
    Контекст выполнения операции.

    Attributes:
        run_id: Уникальный идентификатор запуска (timestamp или короткий UUID)
        started_at: Время начала выполнения
        triggered_by: Источник запуска (cli/api/controller/test)
        command: Команда CLI которая была вызвана
        extra: Дополнительные данные контекста
    """

    run_id: str
    started_at: datetime
    triggered_by: TriggerSource = "cli"
    command: str = ""
    extra: dict = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        triggered_by: TriggerSource = "cli",
        command: str = "",
        use_timestamp_id: bool = True,
    ) -> "RunContext":
        """
        Создаёт новый контекст выполнения.

        Args:
            triggered_by: Источник запуска
            command: Название команды CLI
            use_timestamp_id: Использовать timestamp вместо UUID

        Returns:
            RunContext: Новый контекст
        """
        started_at = datetime.now()

        if use_timestamp_id:
            # Формат: 2025-03-14T12-30-22
            run_id = started_at.strftime("%Y-%m-%dT%H-%M-%S")
        else:
            run_id = str(uuid.uuid4())[:8]

        ctx = cls(
            run_id=run_id,
            started_at=started_at,
            triggered_by=triggered_by,
            command=command,
        )
        logger.debug(f"Created RunContext: {ctx.run_id}")
        return ctx

    @property
    def elapsed_seconds(self) -> float:
        """Время выполнения в секундах."""
        return (datetime.now() - self.started_at).total_seconds()

    @property
    def elapsed_human(self) -> str:
        """Время выполнения в человекочитаемом формате."""
        elapsed = self.elapsed_seconds
        if elapsed < 60:
            return f"{elapsed:.1f}s"
        minutes = int(elapsed // 60)
        seconds = int(elapsed % 60)
        return f"{minutes}m {seconds}s"


# Глобальный контекст для случаев когда нет явного прокидывания (CLI)
_current_context: Optional[RunContext] = None


def get_current_context() -> Optional[RunContext]:
    """Возвращает текущий глобальный контекст."""
    return _current_context


def set_current_context(ctx: Optional[RunContext]) -> None:
    """Устанавливает текущий глобальный контекст."""
    global _current_context
    _current_context = ctx


class CancelToken:
    """
    Потокобезопасный флаг отмены.

    Один токен может разделяться несколькими операциями:
    controller.stop() отменяет все reconcile в работе.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str = "") -> None:
        """
        Бросает OperationCancelledError если отмена уже запрошена.

        Args:
            operation: Что именно прерываем (для сообщения)
        """
        if self._event.is_set():
            raise OperationCancelledError(operation=operation or None)

    def wait(self, timeout: float) -> bool:
        """Ждёт отмены не дольше timeout. True если отменено."""
        return self._event.wait(timeout)


def check_cancelled(cancel: Optional[CancelToken], operation: str = "") -> None:
    """Проверка отмены для опционального токена."""
    if cancel is not None:
        cancel.raise_if_cancelled(operation)
