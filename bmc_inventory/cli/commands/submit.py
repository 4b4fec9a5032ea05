"""
Команда submit.

Обход BMC (или готовый payload из --file) → новый snapshot →
reconcile до терминальной фазы → итог.
"""

import logging
from pathlib import Path

from ..utils import get_credentials
from ...core.models import SnapshotPhase
from ...services import InventoryService, build_walker

logger = logging.getLogger(__name__)


def _print_snapshot(snapshot) -> None:
    print(f"Snapshot {snapshot.id}: {snapshot.phase.value or '<unset>'}")
    if snapshot.message:
        print(f"  {snapshot.message}")
    for line in snapshot.logs:
        print(f"  - {line}")


def cmd_submit(args, ctx=None, config=None) -> int:
    """
    Returns:
        int: 0 если snapshot в фазе Complete, иначе 1
    """
    if args.file:
        if not Path(args.file).is_file():
            print(f"Файл не найден: {args.file}")
            return 1
        payload = Path(args.file).read_bytes()
        name = args.name or Path(args.file).stem
    else:
        if not args.host:
            print("Укажите host или --file")
            return 2
        credentials = get_credentials(args)
        result = build_walker(config).discover(args.host, credentials)
        payload = result.to_payload()
        name = args.name or args.host

    service = InventoryService.from_config(config)
    snapshot = service.submit_payload(payload, name=name)

    if args.no_reconcile:
        print(f"Snapshot {snapshot.id} создан")
        return 0

    service.reconcile(snapshot.id)
    snapshot = service.get_snapshot(snapshot.id)
    _print_snapshot(snapshot)
    return 0 if snapshot.phase == SnapshotPhase.COMPLETE else 1
