"""Общие утилиты CLI."""

import json
import sys
from typing import Any

from ..core.credentials import Credentials, CredentialsManager


def get_credentials(args) -> Credentials:
    """
    Учётные данные BMC: --username/--password → env → интерактивный ввод.

    Raises:
        ValueError: Учётные данные не получены (--no-input и нет env)
    """
    manager = CredentialsManager(
        username=getattr(args, "username", None),
        password=getattr(args, "password", None),
    )
    return manager.get_credentials(interactive=not getattr(args, "no_input", False))


def print_json(data: Any, stream=None) -> None:
    """JSON в stdout (или в stream)."""
    stream = stream or sys.stdout
    stream.write(json.dumps(data, ensure_ascii=False, indent=2))
    stream.write("\n")
