import os

from .errors import ConfigError

# Configurações globais de ambiente
XMPP_ID = os.getenv("XMPP_ID", "").strip()
XMPP_PASS = os.getenv("XMPP_PASS", "")
XMPP_RECIPIENTS = os.getenv("XMPP_RECIPIENTS", "").strip()

# Flags de presença: qualquer valor (inclusive vazio) ativa
XMPP_SKIP_VERIFY = "XMPP_SKIP_VERIFY" in os.environ
XMPP_OVER_TLS = "XMPP_OVER_TLS" in os.environ

LISTEN_ADDRESS = os.getenv("XMPP_WEBHOOK_LISTEN_ADDRESS", "").strip() or ":4321"
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"

# Sessão XMPP
XMPP_CONNECT_TIMEOUT_SECONDS = int(os.getenv("XMPP_CONNECT_TIMEOUT_SECONDS", "30"))
XMPP_CLOSE_TIMEOUT_SECONDS = 2.0

# Mecanismos SASL aceitos; o slixmpp escolhe sempre o mais forte suportado pelo servidor
SASL_MECHANISMS = (
    "SCRAM-SHA-256-PLUS",
    "SCRAM-SHA-256",
    "SCRAM-SHA-1-PLUS",
    "SCRAM-SHA-1",
    "PLAIN",
)

# Fila webhooks -> XMPP (0 = sem limite)
QUEUE_MAX = int(os.getenv("XMPP_WEBHOOK_QUEUE_SIZE", "100"))
ENQUEUE_TIMEOUT_SECONDS = float(os.getenv("XMPP_WEBHOOK_ENQUEUE_TIMEOUT_SECONDS", "30"))

SERVICE_NAME = "xmpp-webhook"


def validate_config():
    missing = [
        name
        for name, value in (("XMPP_ID", XMPP_ID), ("XMPP_PASS", XMPP_PASS), ("XMPP_RECIPIENTS", XMPP_RECIPIENTS))
        if not value
    ]
    if missing:
        raise ConfigError(f"{', '.join(missing)} não definido(s)")


def split_recipients(text):
    return [s.strip() for s in (text or "").split(",") if s.strip()]


def parse_listen_address(value):
    """Converte 'host:porta' (ex.: ':4321') em (host, porta). Host vazio = todas as interfaces."""
    host, sep, port = (value or "").strip().rpartition(":")
    if not sep:
        raise ConfigError(f"endereço de escuta inválido: {value!r}")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigError(f"porta inválida no endereço de escuta: {value!r}") from None
    if not 0 < port_number < 65536:
        raise ConfigError(f"porta fora do intervalo no endereço de escuta: {value!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, port_number
