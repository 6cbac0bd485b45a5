from dataclasses import dataclass
from typing import Optional, Tuple
from xml.etree import ElementTree

from .address import Address
from .errors import DecodeError, InvalidAddress

CHAT = "chat"


@dataclass(frozen=True)
class AlertMessage:
    """Alerta normalizado gerado por um parser a partir de uma requisição HTTP."""

    text: str
    # None = usar os destinatários padrão (XMPP_RECIPIENTS)
    recipients: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if self.recipients is not None and not isinstance(self.recipients, tuple):
            object.__setattr__(self, "recipients", tuple(self.recipients))


@dataclass(frozen=True)
class Delivery:
    sender: Address
    to: Address
    text: str


@dataclass(frozen=True)
class InboundMessage:
    sender: Address
    to: Optional[Address]
    type: str
    body: str


def local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def decode_message(element: ElementTree.Element) -> InboundMessage:
    """
    Decodifica um elemento <message/> independente do namespace (jabber:client).
    Sem 'type' assume 'normal' (RFC 6121); sem <body/> o corpo é vazio.
    """
    if local_name(element.tag) != "message":
        raise DecodeError(f"elemento não é message: {element.tag!r}")

    raw_from = element.get("from")
    if not raw_from:
        raise DecodeError("message sem atributo 'from'")
    try:
        sender = Address.parse(raw_from)
        raw_to = element.get("to")
        to = Address.parse(raw_to) if raw_to else None
    except InvalidAddress as exc:
        raise DecodeError(str(exc)) from exc

    body = ""
    for child in element:
        if local_name(child.tag) == "body":
            body = child.text or ""
            break

    return InboundMessage(sender=sender, to=to, type=element.get("type") or "normal", body=body)
