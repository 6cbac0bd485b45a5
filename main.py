import logging
import os
import queue
import sys

from xmpp_webhook.address import Address
from xmpp_webhook.constants import (
    DEBUG_MODE,
    LISTEN_ADDRESS,
    QUEUE_MAX,
    XMPP_ID,
    XMPP_OVER_TLS,
    XMPP_PASS,
    XMPP_RECIPIENTS,
    XMPP_SKIP_VERIFY,
    parse_listen_address,
    split_recipients,
    validate_config,
)
from xmpp_webhook.controller import create_app
from xmpp_webhook.dispatcher import InboundDispatcher
from xmpp_webhook.errors import ErrorSink, RelayError
from xmpp_webhook.fanout import FanOut
from xmpp_webhook.session import open_session

logger = logging.getLogger("xmpp_webhook")


def configure_logging(debug=DEBUG_MODE):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    if not debug:
        logging.getLogger("slixmpp").setLevel(logging.WARNING)


def _exit_on_stream_error(exc):
    # Sem reconexão: o supervisor do processo reinicia o serviço
    logger.critical("Encerrando processo: %s", exc)
    logging.shutdown()
    os._exit(1)


def run():
    configure_logging()
    validate_config()
    identity = Address.parse(XMPP_ID)
    host, port = parse_listen_address(LISTEN_ADDRESS)

    session = open_session(identity, XMPP_PASS, skip_verify=XMPP_SKIP_VERIFY, direct_tls=XMPP_OVER_TLS)
    messages = queue.Queue(maxsize=QUEUE_MAX)
    errors = ErrorSink()

    dispatcher = InboundDispatcher(session, session.identity, errors=errors, on_fatal=_exit_on_stream_error)
    fanout = FanOut(session, session.identity, messages, split_recipients(XMPP_RECIPIENTS), errors=errors)
    dispatcher.start()
    fanout.start()

    app = create_app(messages)
    try:
        # use_reloader=False evita um segundo processo (e uma segunda sessão XMPP) com DEBUG_MODE
        app.run(host=host, port=port, debug=DEBUG_MODE, threaded=True, use_reloader=False)
    finally:
        fanout.stop()
        session.close()
        fanout.join(timeout=2)
        dispatcher.join(timeout=2)
        logger.info("Relay finalizado (%d erro(s) ignorado(s))", errors.count())


if __name__ == '__main__':
    try:
        run()
    except RelayError as exc:
        logger.critical("Falha fatal: %s", exc)
        sys.exit(1)
