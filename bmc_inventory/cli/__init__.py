"""
CLI модуль bmc_inventory.

Структура:
- utils.py: общие утилиты (get_credentials, print_json)
- commands/: обработчики команд
  - discover.py: discover
  - submit.py: submit
  - snapshots.py: snapshots, reconcile
  - serve.py: serve

Примеры использования:
    python -m bmc_inventory discover 10.0.0.5 -o payload.json
    python -m bmc_inventory submit 10.0.0.5
    python -m bmc_inventory submit --file payload.json
    python -m bmc_inventory snapshots --phase Error
    python -m bmc_inventory reconcile ds-1a2b3c4d
    python -m bmc_inventory serve --port 8080
"""

import argparse
import logging
from typing import List, Optional

from .. import __version__
from ..config import load_config
from ..core.context import RunContext, set_current_context
from ..core.exceptions import InventoryError, format_error_for_log
from ..core.logging import LogConfig, setup_logging, setup_logging_from_config
from .commands import (
    cmd_discover,
    cmd_submit,
    cmd_snapshots,
    cmd_reconcile,
    cmd_serve,
)

logger = logging.getLogger(__name__)

COMMANDS = {
    "discover": cmd_discover,
    "submit": cmd_submit,
    "snapshots": cmd_snapshots,
    "reconcile": cmd_reconcile,
    "serve": cmd_serve,
}


def _add_credentials_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--username", "-u", help="Пользователь BMC (или env BMC_USERNAME)")
    parser.add_argument("--password", "-p", help="Пароль BMC (или env BMC_PASSWORD)")
    parser.add_argument(
        "--no-input",
        action="store_true",
        help="Не спрашивать учётные данные интерактивно",
    )


def setup_parser() -> argparse.ArgumentParser:
    """
    Создаёт парсер аргументов командной строки.

    Returns:
        ArgumentParser: Настроенный парсер
    """
    parser = argparse.ArgumentParser(
        prog="bmc_inventory",
        description="Обход Redfish BMC и нормализация инвентаря серверов",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  %(prog)s discover 10.0.0.5 -o payload.json
  %(prog)s submit 10.0.0.5
  %(prog)s reconcile ds-1a2b3c4d
  %(prog)s serve --port 8080
        """,
    )

    # Общие аргументы
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Подробный вывод (DEBUG)",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Путь к файлу конфигурации YAML (default: config.yaml)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Логи в формате JSON",
    )

    subparsers = parser.add_subparsers(dest="command", help="Команды")

    # === DISCOVER ===
    discover_parser = subparsers.add_parser("discover", help="Обход Redfish одного BMC")
    discover_parser.add_argument("host", help="IP/hostname BMC")
    discover_parser.add_argument("-o", "--output", help="Файл для payload (default: stdout)")
    _add_credentials_args(discover_parser)

    # === SUBMIT ===
    submit_parser = subparsers.add_parser(
        "submit", help="Обход BMC, создание snapshot и reconcile"
    )
    submit_parser.add_argument("host", nargs="?", help="IP/hostname BMC")
    submit_parser.add_argument("--file", "-f", help="Готовый payload вместо обхода")
    submit_parser.add_argument("--name", help="Имя snapshot")
    submit_parser.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Только создать snapshot",
    )
    _add_credentials_args(submit_parser)

    # === SNAPSHOTS ===
    snapshots_parser = subparsers.add_parser("snapshots", help="Список snapshot")
    snapshots_parser.add_argument(
        "--phase",
        choices=["", "Pending", "Processing", "Complete", "Error"],
        default=None,
        help="Фильтр по фазе",
    )
    snapshots_parser.add_argument("--json", action="store_true", help="Вывод в JSON")

    # === RECONCILE ===
    reconcile_parser = subparsers.add_parser("reconcile", help="Reconcile snapshot")
    reconcile_parser.add_argument("uid", help="ID snapshot (ds-<hex>)")

    # === SERVE ===
    serve_parser = subparsers.add_parser("serve", help="HTTP API + контроллер")
    serve_parser.add_argument("--host", default=None, help="Адрес (default: из config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Порт (default: из config)")

    # === VERSION ===
    subparsers.add_parser("version", help="Версия")

    return parser


def _setup_logging(args, config) -> None:
    """Приоритет: -v / --json-logs > config.yaml > INFO."""
    log_config = LogConfig.from_dict(config.logging.to_dict())
    if args.verbose:
        log_config.level = logging.DEBUG

    if args.json_logs:
        setup_logging(json_format=True, level=log_config.level)
    else:
        setup_logging_from_config(log_config)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Главная функция CLI.

    Returns:
        int: Код возврата
    """
    parser = setup_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print(f"bmc_inventory {__version__}")
        return 0

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        config = load_config(args.config)
    except InventoryError as e:
        print(f"Ошибка конфигурации: {e}")
        return 2

    _setup_logging(args, config)

    ctx = RunContext.create(triggered_by="cli", command=args.command)
    set_current_context(ctx)
    logger.info(f"Run started (command={args.command})")

    try:
        code = handler(args, ctx, config)
    except InventoryError as e:
        logger.error(format_error_for_log(e))
        return 1
    except ValueError as e:
        # CredentialsManager: нет учётных данных
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Прервано пользователем")
        return 130
    finally:
        set_current_context(None)

    logger.info(f"Run completed: {ctx.run_id} (elapsed={ctx.elapsed_human})")
    return code


__all__ = [
    "setup_parser",
    "main",
    "COMMANDS",
]
