"""Connection targets and their SOCKS5 wire encoding."""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Generator, Union

from asocks5.errors import AddrError, IncorrectAddressType

ADDR_TYPE_IPV4 = 0x01
ADDR_TYPE_DOMAIN_NAME = 0x03
ADDR_TYPE_IPV6 = 0x04

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class TargetAddr:
    """An IP address or a domain name, paired with a port.

    A ``str`` host is a domain name that the proxy resolves; an
    ``IPv4Address``/``IPv6Address`` host is a literal IP address.
    """

    host: Union[str, IPAddress]
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.host, (str, ipaddress.IPv4Address, ipaddress.IPv6Address)):
            raise TypeError(f"unsupported host type: {type(self.host).__name__}")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")

    def __str__(self) -> str:
        if isinstance(self.host, ipaddress.IPv6Address):
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    async def resolve_dns(self) -> "TargetAddr":
        """Return an IP target, resolving a domain with the system resolver."""
        if self.is_ip():
            return self
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except OSError as exc:
            raise AddrError(f"DNS Resolution failed: {exc}") from exc
        if not infos:
            raise AddrError("DNS returned no appropriate records")
        sockaddr = infos[0][4]
        return TargetAddr(ipaddress.ip_address(sockaddr[0]), sockaddr[1])

    def is_ip(self) -> bool:
        return not isinstance(self.host, str)

    def is_domain(self) -> bool:
        return not self.is_ip()

    def to_bytes(self) -> bytes:
        """Encode as ATYP, address and big-endian port."""
        port = self.port.to_bytes(2, "big")
        if isinstance(self.host, ipaddress.IPv4Address):
            return bytes([ADDR_TYPE_IPV4]) + self.host.packed + port
        if isinstance(self.host, ipaddress.IPv6Address):
            return bytes([ADDR_TYPE_IPV6]) + self.host.packed + port
        domain = self.host.encode("utf-8")
        if len(domain) > 0xFF:
            raise AddrError(f"Domain length {len(domain)} exceeded maximum")
        return bytes([ADDR_TYPE_DOMAIN_NAME, len(domain)]) + domain + port

    def to_host_and_port(self) -> tuple[str, int]:
        return str(self.host), self.port

    def to_socket_address(self) -> tuple[str, int]:
        """Return a socket address; domains must be resolved first."""
        if self.is_domain():
            raise AddrError(
                "Domain name has to be explicitly resolved, please use TargetAddr.resolve_dns()."
            )
        return str(self.host), self.port


def to_target_addr(value: Any) -> TargetAddr:
    """Convert a TargetAddr or a (host, port, ...) tuple into a TargetAddr.

    A string host is parsed as an IPv4 or IPv6 literal first and otherwise
    kept as a domain name.
    """
    if isinstance(value, TargetAddr):
        return value
    if not isinstance(value, (tuple, list)) or len(value) < 2:
        raise TypeError(f"cannot convert {value!r} to a target address")
    host, port = value[0], value[1]
    if isinstance(host, str):
        try:
            host = ipaddress.ip_address(host)
        except ValueError:
            pass
    return TargetAddr(host, int(port))


_Parser = Generator[tuple[int, str], bytes, TargetAddr]


def _address_parser(atyp: int) -> _Parser:
    host: Union[str, IPAddress]
    if atyp == ADDR_TYPE_IPV4:
        raw = yield 4, "Can't read IPv4"
        host = ipaddress.IPv4Address(raw)
    elif atyp == ADDR_TYPE_IPV6:
        raw = yield 16, "Can't read IPv6"
        host = ipaddress.IPv6Address(raw)
    elif atyp == ADDR_TYPE_DOMAIN_NAME:
        length = yield 1, "Can't read domain len"
        raw = yield length[0], "Can't read domain content"
        try:
            host = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AddrError("Malformed UTF-8") from exc
    else:
        raise IncorrectAddressType()
    port = yield 2, "Can't read port number"
    return TargetAddr(host, int.from_bytes(port, "big"))


def parse_address(data: bytes, atyp: int) -> tuple[TargetAddr, bytes]:
    """Decode an address of type ``atyp`` from ``data``; return it and the rest."""
    view = bytes(data)
    offset = 0
    parser = _address_parser(atyp)
    try:
        size, label = next(parser)
        while True:
            chunk = view[offset:offset + size]
            if len(chunk) < size:
                raise AddrError(f"{label}: early eof")
            offset += size
            size, label = parser.send(chunk)
    except StopIteration as stop:
        return stop.value, view[offset:]


async def read_address(reader: asyncio.StreamReader, atyp: int) -> TargetAddr:
    """Read an address of type ``atyp`` from a stream reader."""
    parser = _address_parser(atyp)
    try:
        size, label = next(parser)
        while True:
            try:
                chunk = await reader.readexactly(size)
            except asyncio.IncompleteReadError as exc:
                raise AddrError(f"{label}: {exc}") from exc
            size, label = parser.send(chunk)
    except StopIteration as stop:
        return stop.value