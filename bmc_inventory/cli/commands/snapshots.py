"""
Команды snapshots и reconcile.

- snapshots: список snapshot с фазами
- reconcile <uid>: довести snapshot до терминальной фазы
"""

import logging

from ..utils import print_json
from ...core.models import SnapshotPhase
from ...services import InventoryService
from .submit import _print_snapshot

logger = logging.getLogger(__name__)


def cmd_snapshots(args, ctx=None, config=None) -> int:
    """Список snapshot."""
    service = InventoryService.from_config(config)
    snapshots = service.list_snapshots()

    if args.phase:
        snapshots = [s for s in snapshots if s.phase.value == args.phase]

    if args.json:
        print_json([
            {
                "uid": s.id,
                "name": s.name,
                "phase": s.phase.value,
                "message": s.message,
                "createdAt": s.created_at,
            }
            for s in snapshots
        ])
        return 0

    if not snapshots:
        print("Snapshot не найдены")
        return 0

    print(f"{'UID':<36} {'PHASE':<11} {'CREATED':<26} NAME")
    for s in snapshots:
        print(f"{s.id:<36} {s.phase.value or '-':<11} {s.created_at:<26} {s.name}")
    print(f"\nВсего: {len(snapshots)}")
    return 0


def cmd_reconcile(args, ctx=None, config=None) -> int:
    """Reconcile одного snapshot."""
    service = InventoryService.from_config(config)
    service.reconcile(args.uid)
    snapshot = service.get_snapshot(args.uid)
    _print_snapshot(snapshot)
    return 0 if snapshot.phase == SnapshotPhase.COMPLETE else 1
