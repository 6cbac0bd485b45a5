import asyncio
import concurrent.futures
import copy
import inspect
import logging
import queue
import ssl
import threading
from typing import Callable, Optional

import slixmpp

from .address import Address
from .constants import (
    SASL_MECHANISMS,
    XMPP_CLOSE_TIMEOUT_SECONDS,
    XMPP_CONNECT_TIMEOUT_SECONDS,
)
from .errors import InvalidAddress, SendCancelled, SessionError
from .messages import CHAT, Delivery

logger = logging.getLogger(__name__)

# Marca de fim do stream na fila de entrada
_END_OF_STREAM = object()
# Intervalo em que um envio pendente verifica o evento de cancelamento
_CANCEL_POLL_SECONDS = 0.2


class Session:
    """
    Interface da sessão compartilhada entre o dispatcher (eco) e o fan-out.
    Toda escrita passa por send(), que serializa os envios com um único lock:
    duas stanzas nunca são escritas intercaladas no stream.
    """

    def __init__(self):
        self._write_lock = threading.Lock()

    def send(self, delivery: Delivery, cancel: Optional[threading.Event] = None):
        with self._write_lock:
            self._transmit(delivery, cancel)

    def _transmit(self, delivery: Delivery, cancel: Optional[threading.Event]):
        raise NotImplementedError

    def receive_loop(self, handler: Callable):
        raise NotImplementedError

    def close(self):
        pass


class XMPPSession(Session):
    """
    Sessão slixmpp rodando em um event loop próprio (thread 'xmpp-session').
    As outras threads só acessam o loop via run_coroutine_threadsafe.
    """

    def __init__(self, identity: Address, secret: str, skip_verify: bool = False, direct_tls: bool = False):
        super().__init__()
        self.identity = identity
        self._secret = secret
        self.skip_verify = skip_verify
        self.direct_tls = direct_tls
        self._client: Optional[slixmpp.ClientXMPP] = None
        self._ready: Optional[asyncio.Future] = None
        self._inbound: queue.Queue = queue.Queue()
        self._closing = threading.Event()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="xmpp-session", daemon=True)

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self, timeout: float = XMPP_CONNECT_TIMEOUT_SECONDS):
        self._thread.start()
        future = asyncio.run_coroutine_threadsafe(self._connect(), self._loop)
        try:
            future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            self.close()
            raise SessionError(f"tempo esgotado ao conectar como {self.identity} ({timeout}s)") from None
        except SessionError:
            self.close()
            raise
        except Exception as exc:
            self.close()
            raise SessionError(f"falha ao conectar como {self.identity}: {exc}") from exc
        logger.info("Sessão XMPP estabelecida como %s", self.identity)

    def build_client(self) -> slixmpp.ClientXMPP:
        client = slixmpp.ClientXMPP(
            self.identity.text,
            self._secret,
            plugin_config={
                "feature_mechanisms": {
                    "use_mechs": set(SASL_MECHANISMS),
                    # Autenticação só depois do TLS
                    "unencrypted_plain": False,
                    "unencrypted_scram": False,
                },
            },
        )

        context = ssl.create_default_context()
        if self.skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            client.add_event_handler("ssl_invalid_cert", self._on_invalid_cert)
        client.ssl_context = context

        client.enable_direct_tls = self.direct_tls
        client.enable_starttls = not self.direct_tls
        return client

    async def _connect(self):
        client = self.build_client()
        self._ready = asyncio.get_running_loop().create_future()

        client.add_event_handler("session_start", self._on_session_start)
        client.add_event_handler("failed_all_auth", self._on_failed_auth)
        client.add_event_handler("connection_failed", self._on_connection_failed)
        client.add_event_handler("disconnected", self._on_disconnected)
        client.add_filter("in", self._capture)

        self._client = client
        client.connect()
        await self._ready

        # Presença inicial: contatos passam a ver o relay online
        client.send_presence()
        try:
            self.identity = Address.parse(str(client.boundjid.full))
        except InvalidAddress:
            logger.warning("JID vinculado inválido (%s), mantendo %s", client.boundjid, self.identity)

    def _fail(self, reason: str):
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(SessionError(reason))

    def _on_session_start(self, _event):
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(True)

    def _on_failed_auth(self, _event):
        self._fail(f"autenticação de {self.identity} falhou (mecanismos: {', '.join(SASL_MECHANISMS)})")

    def _on_connection_failed(self, error):
        self._fail(f"falha ao conectar em {self.identity.domain}: {error}")

    def _on_invalid_cert(self, _der_cert):
        logger.warning("Certificado TLS inválido aceito (XMPP_SKIP_VERIFY)")

    def _on_disconnected(self, reason):
        self._fail(f"conexão encerrada durante a negociação: {reason}")
        if not self._closing.is_set():
            logger.error("Stream XMPP encerrado: %s", reason)
        self._inbound.put(_END_OF_STREAM)

    def _capture(self, stanza):
        # Filtro de entrada: todo elemento de topo vai para a fila do dispatcher
        self._inbound.put(copy.deepcopy(stanza.xml))
        return stanza

    def receive_loop(self, handler: Callable):
        while True:
            element = self._inbound.get()
            if element is _END_OF_STREAM:
                if self._closing.is_set():
                    return
                raise SessionError("stream XMPP encerrado pelo servidor")
            handler(element)

    def _transmit(self, delivery: Delivery, cancel: Optional[threading.Event]):
        if self._client is None or self._closing.is_set():
            raise SessionError("sessão XMPP não está aberta")
        try:
            future = asyncio.run_coroutine_threadsafe(self._write(delivery), self._loop)
        except RuntimeError as exc:
            raise SessionError(f"event loop da sessão indisponível: {exc}") from exc

        while True:
            try:
                return future.result(timeout=_CANCEL_POLL_SECONDS)
            except concurrent.futures.TimeoutError:
                if cancel is not None and cancel.is_set():
                    future.cancel()
                    raise SendCancelled(f"envio para {delivery.to} cancelado") from None
                # Loop parado não completa mais o future: libera o lock de escrita
                if self._closing.is_set() or not self._loop.is_running():
                    future.cancel()
                    raise SessionError(f"sessão XMPP encerrada durante o envio para {delivery.to}") from None
            except concurrent.futures.CancelledError:
                raise SendCancelled(f"envio para {delivery.to} cancelado") from None
            except SessionError:
                raise
            except Exception as exc:
                raise SessionError(f"falha ao enviar para {delivery.to}: {exc}") from exc

    async def _write(self, delivery: Delivery):
        if self._client.transport is None:
            raise SessionError("sem conexão com o servidor XMPP")
        message = self._client.make_message(
            mto=delivery.to.text,
            mbody=delivery.text,
            mtype=CHAT,
            mfrom=delivery.sender.text,
        )
        message.send()

    async def _disconnect(self):
        client = self._client
        try:
            result = client.disconnect(wait=XMPP_CLOSE_TIMEOUT_SECONDS)
            if inspect.isawaitable(result):
                await result
        finally:
            client.abort()

    def close(self):
        """Fecha o stream e o transporte. Erros são apenas logados."""
        self._closing.set()
        if self._client is not None and self._loop.is_running():
            try:
                future = asyncio.run_coroutine_threadsafe(self._disconnect(), self._loop)
                future.result(XMPP_CLOSE_TIMEOUT_SECONDS + 1)
            except Exception as exc:
                logger.warning("Erro ao encerrar stream XMPP: %s", exc)

        try:
            if self._loop.is_running():
                self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread.is_alive():
                self._thread.join(XMPP_CLOSE_TIMEOUT_SECONDS)
            if not self._thread.is_alive() and not self._loop.is_closed():
                self._loop.close()
        except Exception as exc:
            logger.warning("Erro ao encerrar event loop da sessão: %s", exc)

        # Libera o receive_loop mesmo se 'disconnected' não chegou a disparar
        self._inbound.put(_END_OF_STREAM)
        logger.info("Sessão XMPP encerrada")


def open_session(
    identity: Address,
    secret: str,
    skip_verify: bool = False,
    direct_tls: bool = False,
    timeout: float = XMPP_CONNECT_TIMEOUT_SECONDS,
) -> XMPPSession:
    """Conecta, negocia TLS, autentica, vincula recurso e envia presença. Levanta SessionError."""
    session = XMPPSession(identity, secret, skip_verify=skip_verify, direct_tls=direct_tls)
    session.start(timeout)
    return session
