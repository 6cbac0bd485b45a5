import logging
import threading
from typing import Callable, Optional
from xml.etree import ElementTree

from .address import Address
from .errors import DecodeError, ErrorSink, SessionError
from .messages import CHAT, Delivery, decode_message, local_name
from .session import Session

logger = logging.getLogger(__name__)


class InboundDispatcher(threading.Thread):
    """
    Único leitor do stream da sessão. Mensagens de chat com corpo são ecoadas
    para o endereço bare do remetente; todo o resto é descartado.
    """

    def __init__(
        self,
        session: Session,
        identity: Address,
        errors: Optional[ErrorSink] = None,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        super().__init__(name="inbound-dispatcher", daemon=True)
        self.session = session
        self.identity = identity
        self.errors = errors or ErrorSink()
        self.on_fatal = on_fatal

    def run(self):
        logger.debug("InboundDispatcher iniciado")
        try:
            self.session.receive_loop(self.handle)
        except SessionError as exc:
            logger.error("InboundDispatcher: sessão perdida: %s", exc)
            if self.on_fatal is not None:
                self.on_fatal(exc)
            return
        logger.debug("InboundDispatcher finalizado")

    def handle(self, element: ElementTree.Element) -> Optional[Delivery]:
        # presence, iq, erros de stream etc. não interessam aqui
        if local_name(element.tag) != "message":
            return None

        try:
            message = decode_message(element)
        except DecodeError as exc:
            self.errors.report("decode", exc)
            return None

        if not message.body or message.type != CHAT:
            return None

        reply = Delivery(sender=self.identity, to=message.sender.bare(), text=message.body)
        logger.debug("Eco para %s: %r", reply.to, reply.text)
        try:
            self.session.send(reply)
        except SessionError as exc:
            self.errors.report("echo", exc)
        return reply
