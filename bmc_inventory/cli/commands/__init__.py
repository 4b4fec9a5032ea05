"""
CLI команды.

Каждый модуль содержит обработчики команд:
- discover.py: discover
- submit.py: submit
- snapshots.py: snapshots, reconcile
- serve.py: serve
"""

from .discover import cmd_discover
from .submit import cmd_submit
from .snapshots import cmd_snapshots, cmd_reconcile
from .serve import cmd_serve

__all__ = [
    "cmd_discover",
    "cmd_submit",
    "cmd_snapshots",
    "cmd_reconcile",
    "cmd_serve",
]
