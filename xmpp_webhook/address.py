from dataclasses import dataclass
from typing import Optional, Union

from slixmpp.jid import JID, InvalidJID

from .errors import InvalidAddress


@dataclass(frozen=True)
class Address:
    """Endereço XMPP no formato local@domínio/recurso. Local e recurso são opcionais."""

    local: str
    domain: str
    resource: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Address":
        text = (text or "").strip()
        if not text:
            raise InvalidAddress("endereço vazio")

        # Validação RFC 7622 (nodeprep, IDNA, resourceprep) feita pelo slixmpp
        try:
            jid = JID(text)
        except (InvalidJID, UnicodeError) as exc:
            raise InvalidAddress(f"endereço inválido {text!r}: {exc}") from exc
        if not jid.domain:
            raise InvalidAddress(f"domínio vazio: {text!r}")
        return cls(local=jid.node, domain=jid.domain, resource=jid.resource or None)

    @property
    def text(self) -> str:
        value = f"{self.local}@{self.domain}" if self.local else self.domain
        if self.resource:
            value = f"{value}/{self.resource}"
        return value

    def __str__(self):
        return self.text

    def bare(self) -> "Address":
        if self.resource is None:
            return self
        return Address(local=self.local, domain=self.domain)

    def same_bare(self, other: Union["Address", str]) -> bool:
        if isinstance(other, str):
            other = Address.parse(other)
        return self.local == other.local and self.domain == other.domain
