"""
Команда discover.

Обход Redfish одного BMC без записи в хранилище.
Результат: payload snapshot (JSON) в файл или stdout.
Без -o в stdout только JSON, итог обхода печатается в stderr.
"""

import logging
import sys
from pathlib import Path

from ..utils import get_credentials
from ...services import build_walker

logger = logging.getLogger(__name__)


def cmd_discover(args, ctx=None, config=None) -> int:
    """
    Обходит BMC и выводит payload.

    Returns:
        int: Код возврата
    """
    credentials = get_credentials(args)
    walker = build_walker(config)

    result = walker.discover(args.host, credentials)
    payload = result.to_payload()

    summary = (
        f"Redfish Discovery Complete: Found {len(result.records)} total devices "
        f"({len(result.roots())} systems, {len(result.warnings)} warnings)."
    )

    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        print(f"Payload сохранён: {path} ({len(payload)} байт)")
        print(summary)
    else:
        print(payload.decode("utf-8"))
        print(summary, file=sys.stderr)
    return 0
