"""SOCKS4 and SOCKS4a client."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from enum import Enum
from typing import Optional

from asocks5.errors import ExceededMaxDomainLen, SocksError
from asocks5.stream import tcp_connect
from asocks5.target_addr import TargetAddr, to_target_addr

log = logging.getLogger(__name__)

SOCKS4_VERSION = 0x04

_MAX_ADDR_LEN = 260
_DOMAIN_OFFSET = 8


class Socks4Command(Enum):
    """A SOCKS4 request command."""

    CONNECT = 0x01
    BIND = 0x02

    def as_u8(self) -> int:
        """Return the wire code of this command."""
        return self.value

    @classmethod
    def from_u8(cls, code: int) -> Optional["Socks4Command"]:
        """Return the command for a wire code, or None if it is unknown."""
        try:
            return cls(code)
        except ValueError:
            return None


class Socks4Reply(Enum):
    """SOCKS4 reply statuses, valued by their description."""

    SUCCEEDED = "Succeeded"
    GENERAL_FAILURE = "General failure"
    HOST_UNREACHABLE = "Host unreachable"
    ADDRESS_TYPE_NOT_SUPPORTED = "Address type not supported"
    INVALID_USER = "Invalid user"
    UNKNOWN_RESPONSE = "Unknown response"

    def __str__(self) -> str:
        return self.value

    def as_u8(self) -> int:
        """Return the wire code; replies with no code raise ValueError."""
        try:
            return _SOCKS4_CODES[self]
        except KeyError:
            raise ValueError(f"Unsupported ReplyStatus: {self.name}") from None

    @classmethod
    def from_u8(cls, code: int) -> "Socks4Reply":
        """Return the reply for a wire code; unknown codes give UNKNOWN_RESPONSE."""
        return _SOCKS4_BY_CODE.get(code, cls.UNKNOWN_RESPONSE)


_SOCKS4_CODES = {
    Socks4Reply.SUCCEEDED: 0x5A,
    Socks4Reply.GENERAL_FAILURE: 0x5B,
    Socks4Reply.HOST_UNREACHABLE: 0x5C,
    Socks4Reply.INVALID_USER: 0x5D,
}

_SOCKS4_BY_CODE = {code: reply for reply, code in _SOCKS4_CODES.items()}


class Socks4ReplyError(SocksError):
    """A SOCKS4 request failed or was refused."""

    def __init__(self, reply: Socks4Reply, code: Optional[int] = None) -> None:
        super().__init__(f"Error with reply: {reply.value}.")
        self.reply = reply
        self.code = code


class Socks4Stream:
    """A connection tunnelled through a SOCKS4 proxy."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer
        self.target: Optional[TargetAddr] = None

    @classmethod
    def use_stream(
        cls, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> "Socks4Stream":
        """Wrap an already opened connection to a SOCKS4 server."""
        return cls(reader, writer)

    async def request(
        self, cmd: Socks4Command, target: TargetAddr, resolve_locally: bool
    ) -> None:
        """Send a request for ``target`` and check the server's reply."""
        if target.is_domain() and resolve_locally:
            target = await target.resolve_dns()
        self.target = target
        await self._send_command_request(cmd)
        await self._read_command_reply()

    async def _send_command_request(self, cmd: Socks4Command) -> None:
        target = self.target
        if target is None:
            raise SocksError("target addr should be present")
        packet = bytearray(_MAX_ADDR_LEN)
        packet[0] = SOCKS4_VERSION
        packet[1] = cmd.as_u8()
        packet[2:4] = target.port.to_bytes(2, "big")
        if isinstance(target.host, ipaddress.IPv4Address):
            packet[4:8] = target.host.packed
        elif isinstance(target.host, ipaddress.IPv6Address):
            log.error("IPv6 are not supported: %s", target)
            raise Socks4ReplyError(Socks4Reply.ADDRESS_TYPE_NOT_SUPPORTED)
        else:
            domain = target.host.encode("utf-8")
            if len(domain) > _MAX_ADDR_LEN - _DOMAIN_OFFSET:
                raise ExceededMaxDomainLen(len(domain))
            packet[4:8] = b"\x00\x00\x00\x01"
            packet[_DOMAIN_OFFSET:_DOMAIN_OFFSET + len(domain)] = domain
        self.writer.write(bytes(packet))
        await self.writer.drain()

    async def _read_command_reply(self) -> None:
        try:
            _, code = await self.reader.readexactly(2)
        except asyncio.IncompleteReadError as exc:
            raise SocksError(f"i/o error: {exc}") from exc
        reply = Socks4Reply.from_u8(code)
        if reply is not Socks4Reply.SUCCEEDED:
            raise Socks4ReplyError(reply, code)

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        target_host: str,
        target_port: int,
        resolve_locally: bool = False,
    ) -> "Socks4Stream":
        """Connect to a target through the SOCKS4 proxy at host:port."""
        return await cls.connect_raw(
            Socks4Command.CONNECT, host, port, target_host, target_port, resolve_locally
        )

    @classmethod
    async def connect_raw(
        cls,
        cmd: Socks4Command,
        host: str,
        port: int,
        target_host: str,
        target_port: int,
        resolve_locally: bool = False,
    ) -> "Socks4Stream":
        """Open a connection to the proxy and send ``cmd`` for the target."""
        reader, writer = await tcp_connect(host, port)
        log.info("Connected @ %s", writer.get_extra_info("peername"))
        try:
            target = to_target_addr((target_host, target_port))
        except (TypeError, ValueError) as exc:
            writer.close()
            raise SocksError(f"Can't convert address to TargetAddr format: {exc}") from exc
        stream = cls.use_stream(reader, writer)
        try:
            await stream.request(cmd, target, resolve_locally)
        except BaseException:
            writer.close()
            raise
        return stream

    async def read(self, n: int = -1) -> bytes:
        return await self.reader.read(n)

    def write(self, data: bytes) -> None:
        self.writer.write(data)

    async def drain(self) -> None:
        await self.writer.drain()

    async def close(self) -> None:
        """Close the connection and wait until it is closed."""
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> "Socks4Stream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()