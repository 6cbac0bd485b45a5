import logging
import queue
import threading
from typing import List, Optional, Sequence

from .address import Address
from .errors import ErrorSink, InvalidAddress, SessionError
from .messages import AlertMessage, Delivery
from .session import Session

logger = logging.getLogger(__name__)


class FanOut(threading.Thread):
    """Consome a fila de alertas e envia cada um para todos os destinatários, em ordem."""

    def __init__(
        self,
        session: Session,
        identity: Address,
        messages: queue.Queue,
        default_recipients: Sequence[str],
        errors: Optional[ErrorSink] = None,
        poll_interval: float = 0.5,
    ):
        super().__init__(name="outbound-fanout", daemon=True)
        self.session = session
        self.identity = identity
        self.messages = messages
        self.default_recipients: List[str] = list(default_recipients)
        self.errors = errors or ErrorSink()
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self):
        logger.debug("FanOut iniciado (destinatários padrão: %s)", ", ".join(self.default_recipients))
        while not self._stop_event.is_set():
            try:
                message = self.messages.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            try:
                self.deliver(message)
            finally:
                self.messages.task_done()
        logger.debug("FanOut finalizado (%d alerta(s) descartado(s) na fila)", self.messages.qsize())

    def resolve_recipients(self, message: AlertMessage) -> List[str]:
        if message.recipients is not None:
            return list(message.recipients)
        return list(self.default_recipients)

    def deliver(self, message: AlertMessage) -> int:
        sent = 0
        for raw in self.resolve_recipients(message):
            if self._stop_event.is_set():
                break
            try:
                recipient = Address.parse(raw)
            except InvalidAddress as exc:
                self.errors.report("recipient", exc)
                continue

            delivery = Delivery(sender=self.identity, to=recipient, text=message.text)
            try:
                self.session.send(delivery, cancel=self._stop_event)
            except SessionError as exc:
                # Falha em um destinatário não impede os demais
                self.errors.report("delivery", exc)
                continue
            sent += 1
        if sent == 0:
            logger.warning("Alerta não entregue a nenhum destinatário")
        return sent
