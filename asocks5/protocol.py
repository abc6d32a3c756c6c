"""SOCKS5 commands, authentication methods and UDP datagram headers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from asocks5.errors import UdpHeaderError
from asocks5.target_addr import TargetAddr, parse_address, to_target_addr

SOCKS5_VERSION = 0x05

AUTH_METHOD_NONE = 0x00
AUTH_METHOD_GSSAPI = 0x01
AUTH_METHOD_PASSWORD = 0x02
AUTH_METHOD_NOT_ACCEPTABLE = 0xFF

REPLY_SUCCEEDED = 0x00

PASSWORD_AUTH_VERSION = 0x01


class Socks5Command(Enum):
    """A SOCKS5 request command."""

    TCP_CONNECT = 0x01
    TCP_BIND = 0x02
    UDP_ASSOCIATE = 0x03

    def as_u8(self) -> int:
        """Return the wire code of this command."""
        return self.value

    @classmethod
    def from_u8(cls, code: int) -> Optional["Socks5Command"]:
        """Return the command for a wire code, or None if it is unknown."""
        try:
            return cls(code)
        except ValueError:
            return None


@dataclass(frozen=True)
class NoAuth:
    """The "no authentication required" method."""

    code: ClassVar[int] = AUTH_METHOD_NONE

    def __str__(self) -> str:
        return "AuthenticationMethod::None"


@dataclass(frozen=True)
class PasswordAuth:
    """Username/password authentication."""

    code: ClassVar[int] = AUTH_METHOD_PASSWORD

    username: str
    password: str = field(repr=False)

    def __str__(self) -> str:
        return "AuthenticationMethod::Password"


AuthenticationMethod = Union[NoAuth, PasswordAuth]


def new_udp_header(target: Any) -> bytes:
    """Build the RSV, FRAG, ATYP, DST.ADDR and DST.PORT header of a UDP datagram."""
    try:
        addr = to_target_addr(target)
    except (TypeError, ValueError) as exc:
        raise UdpHeaderError(f"could not convert target addr: {exc}") from exc
    return b"\x00\x00\x00" + addr.to_bytes()


def parse_udp_request(data: bytes) -> tuple[int, TargetAddr, bytes]:
    """Split a UDP datagram into (frag, target address, payload)."""
    data = bytes(data)
    if len(data) < 4:
        raise UdpHeaderError("could not read UDP header: early eof")
    if data[:2] != b"\x00\x00":
        raise UdpHeaderError("does not match the expected reserved field")
    frag, atyp = data[2], data[3]
    target, payload = parse_address(data[4:], atyp)
    return frag, target, payload