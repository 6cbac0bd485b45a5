import logging
import queue
from typing import Dict, Optional

from flask import Flask, request

from .constants import ENQUEUE_TIMEOUT_SECONDS, SERVICE_NAME
from .errors import ParseError
from .parsers import PARSERS, ParserFunc

logger = logging.getLogger(__name__)


def _make_handler(name: str, parse: ParserFunc, messages: queue.Queue, enqueue_timeout: Optional[float]):
    def handler():
        try:
            message = parse(request)
        except ParseError as e:
            logger.debug("[%s] payload rejeitado: %s", name, e)
            return f'Error: {e}', 400

        logger.debug("[%s] alerta recebido: %r", name, message.text[:500])
        try:
            # Bloqueia enquanto o fan-out não consome (back-pressure)
            messages.put(message, timeout=enqueue_timeout)
        except queue.Full:
            logger.warning("[%s] fila de alertas cheia, alerta descartado", name)
            return 'Error: fila de alertas cheia', 503
        return 'OK', 200

    handler.__name__ = f"ingest_{name}"
    return handler


def create_app(
    messages: queue.Queue,
    parsers: Optional[Dict[str, ParserFunc]] = None,
    enqueue_timeout: Optional[float] = ENQUEUE_TIMEOUT_SECONDS,
):
    app = Flask(__name__)
    parsers = PARSERS if parsers is None else parsers

    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok', 'service': SERVICE_NAME}, 200

    # Um endpoint POST por fonte de alertas; o gateway não conhece os formatos
    for name, parse in parsers.items():
        app.add_url_rule(
            f'/{name}',
            endpoint=f'ingest_{name}',
            view_func=_make_handler(name, parse, messages, enqueue_timeout),
            methods=['POST'],
        )

    return app
