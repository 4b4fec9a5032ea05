"""
Команда serve.

HTTP API + контроллер reconcile в одном процессе (uvicorn).
"""

import logging

logger = logging.getLogger(__name__)


def cmd_serve(args, ctx=None, config=None) -> int:
    import uvicorn

    from ...api.main import create_app

    host = args.host or config.server.host
    port = args.port or config.server.port

    logger.info(f"Запуск HTTP API на {host}:{port}")
    uvicorn.run(create_app(config=config), host=host, port=port, log_config=None)
    return 0
