import logging
import threading
from collections import Counter, deque
from typing import Deque, Tuple

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base de todas as exceções do relay."""


class ConfigError(RelayError):
    pass


class InvalidAddress(RelayError, ValueError):
    pass


class ParseError(RelayError):
    """Payload de webhook rejeitado por um parser."""


class DecodeError(RelayError):
    """Stanza recebida que não pôde ser decodificada."""


class SessionError(RelayError):
    """Falha de conexão, negociação, autenticação ou escrita na sessão XMPP."""


class SendCancelled(SessionError):
    pass


class ErrorSink:
    """
    Política explícita para erros best-effort: registra e loga, nunca propaga.
    Usado pelos workers (eco, fan-out) onde uma falha não pode interromper o loop.
    Guarda apenas os últimos `max_size` erros; os contadores por etapa são totais.
    """

    def __init__(self, max_size: int = 1000):
        self._lock = threading.Lock()
        self._counts: Counter = Counter()
        self.errors: Deque[Tuple[str, Exception]] = deque(maxlen=max_size)

    def report(self, stage: str, exc: Exception):
        with self._lock:
            self._counts[stage] += 1
            self.errors.append((stage, exc))
        logger.debug("erro ignorado (%s): %s", stage, exc)

    def count(self, stage: str = None) -> int:
        with self._lock:
            if stage is None:
                return sum(self._counts.values())
            return self._counts[stage]
