"""
Точка входа для запуска модуля.

Позволяет запускать утилиту как:
    python -m bmc_inventory [команда] [опции]

Примеры:
    python -m bmc_inventory discover 10.0.0.5
    python -m bmc_inventory submit --file payload.json
    python -m bmc_inventory serve
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
