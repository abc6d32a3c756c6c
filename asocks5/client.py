"""SOCKS5 client: tunnelled TCP streams and UDP associations."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Any, Optional

from asocks5.errors import (
    ArgumentInputError,
    AuthenticationRejected,
    AuthMethodUnacceptable,
    ExceededMaxDomainLen,
    Reply,
    ReplyError,
    SocksError,
    UnsupportedSocksVersion,
)
from asocks5.protocol import (
    AUTH_METHOD_NONE,
    AUTH_METHOD_NOT_ACCEPTABLE,
    AUTH_METHOD_PASSWORD,
    PASSWORD_AUTH_VERSION,
    REPLY_SUCCEEDED,
    SOCKS5_VERSION,
    AuthenticationMethod,
    NoAuth,
    PasswordAuth,
    Socks5Command,
    new_udp_header,
    parse_udp_request,
)
from asocks5.stream import tcp_connect, tcp_connect_with_timeout
from asocks5.target_addr import TargetAddr, read_address, to_target_addr

log = logging.getLogger(__name__)

_MAX_DOMAIN_LEN = 0xFF
_MAX_DATAGRAM = 0x10000
_UNSPECIFIED_IPV4 = b"\x01\x00\x00\x00\x00\x00\x00"


@dataclass
class Config:
    """Client options.

    ``connect_timeout`` is in seconds; ``skip_auth`` sends the request
    straight away without the method negotiation (the server must agree).
    """

    connect_timeout: Optional[float] = None
    skip_auth: bool = False


class Socks5Stream:
    """A connection tunnelled through a SOCKS5 proxy."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        config: Optional[Config] = None,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.config = config if config is not None else Config()
        self.target: Optional[TargetAddr] = None

    @classmethod
    async def use_stream(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        auth: Optional[AuthenticationMethod] = None,
        config: Optional[Config] = None,
    ) -> "Socks5Stream":
        """Wrap an open connection to a SOCKS5 server and negotiate authentication."""
        stream = cls(reader, writer, config)
        methods: list[AuthenticationMethod] = [NoAuth()]
        if auth is not None:
            methods.append(auth)
        if stream.config.skip_auth:
            log.debug("skipping auth")
        else:
            await stream._send_version_and_methods(methods)
            await stream._which_method_accepted(methods)
        return stream

    async def _read_exact(self, n: int, context: str) -> bytes:
        try:
            return await self.reader.readexactly(n)
        except (asyncio.IncompleteReadError, ConnectionError) as exc:
            raise SocksError(f"{context}: {exc}") from exc

    async def _send(self, data: bytes, context: str) -> None:
        try:
            self.writer.write(data)
            await self.writer.drain()
        except ConnectionError as exc:
            raise SocksError(f"{context}: {exc}") from exc

    async def _send_version_and_methods(self, methods: list[AuthenticationMethod]) -> None:
        codes = [method.code for method in methods]
        log.debug("client auth methods supported: %s", codes)
        await self._send(
            bytes([SOCKS5_VERSION, len(codes), *codes]),
            "Couldn't write SOCKS version & methods len & supported auth methods",
        )

    async def _which_method_accepted(self, methods: list[AuthenticationMethod]) -> None:
        version, method = await self._read_exact(2, "Can't get chosen auth method")
        log.debug("Socks version (%d), method chosen: %d.", version, method)
        if version != SOCKS5_VERSION:
            raise UnsupportedSocksVersion(version)
        if method == AUTH_METHOD_NONE:
            log.info("No auth will be used")
        elif method == AUTH_METHOD_PASSWORD:
            await self._use_password_auth(methods)
        else:
            log.debug("Don't support this auth method, reply with (0xff)")
            await self._send(
                bytes([SOCKS5_VERSION, AUTH_METHOD_NOT_ACCEPTABLE]),
                "Can't write that the methods are unsupported.",
            )
            raise AuthMethodUnacceptable([method])

    async def _use_password_auth(self, methods: list[AuthenticationMethod]) -> None:
        log.info("Password will be used")
        credentials = next((m for m in methods if isinstance(m, PasswordAuth)), None)
        if credentials is None:
            raise AuthenticationRejected("Authentication rejected, missing user pass")
        user = credentials.username.encode()
        pw_bytes = credentials.password.encode()
        if len(user) > 0xFF or len(pw_bytes) > 0xFF:
            raise ArgumentInputError("username and password must be at most 255 bytes")
        packet = (
            bytes([PASSWORD_AUTH_VERSION, len(user)]) + user + bytes([len(pw_bytes)]) + pw_bytes
        )
        await self._send(packet, "Can't send password")

        version, status = await self._read_exact(2, "Can't read is_success")
        log.debug("Auth: [version: %d, is_success: %d]", version, status)
        if status != REPLY_SUCCEEDED:
            raise AuthenticationRejected(
                f"Authentication with username `{credentials.username}`, rejected."
            )

    async def request(
        self, cmd: Socks5Command, target: Optional[TargetAddr]
    ) -> TargetAddr:
        """Send ``cmd`` for ``target`` and return the address the server bound."""
        self.target = target
        log.info("Requesting headers `%s`...", target)
        await self._request_header(cmd)
        return await self._read_request_reply()

    async def _request_header(self, cmd: Socks5Command) -> None:
        header = bytes([SOCKS5_VERSION, cmd.as_u8(), 0x00])
        target = self.target
        if target is None:
            if cmd is not Socks5Command.UDP_ASSOCIATE:
                raise SocksError("target addr should be present")
            log.debug("UDPAssociate without target_addr, fallback to zeros.")
            address = _UNSPECIFIED_IPV4
        else:
            if target.is_domain():
                length = len(str(target.host).encode())
                if length > _MAX_DOMAIN_LEN:
                    raise ExceededMaxDomainLen(length)
            address = target.to_bytes()
        await self._send(header + address, "Can't write request header's packet.")

    async def _read_request_reply(self) -> TargetAddr:
        version, reply, _rsv, atyp = await self._read_exact(4, "Received malformed reply")
        log.debug("Reply received: [version: %d, reply: %d, atyp: %d]", version, reply, atyp)
        if version != SOCKS5_VERSION:
            raise UnsupportedSocksVersion(version)
        if reply != REPLY_SUCCEEDED:
            try:
                status = Reply.from_u8(reply)
            except ValueError as exc:
                raise SocksError(f"Received unknown reply code {reply}") from exc
            raise ReplyError(status)
        address = await read_address(self.reader, atyp)
        log.info("Remote server bind on %s.", address)
        return address

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        target_host: str,
        target_port: int,
        config: Optional[Config] = None,
    ) -> "Socks5Stream":
        """Connect to a target through the SOCKS5 proxy at host:port."""
        return await cls.connect_raw(
            Socks5Command.TCP_CONNECT, host, port, target_host, target_port, None, config
        )

    @classmethod
    async def connect_with_password(
        cls,
        host: str,
        port: int,
        target_host: str,
        target_port: int,
        username: str,
        password: str,
        config: Optional[Config] = None,
    ) -> "Socks5Stream":
        """Like connect, authenticating with a username and password."""
        auth = PasswordAuth(username, password)
        return await cls.connect_raw(
            Socks5Command.TCP_CONNECT, host, port, target_host, target_port, auth, config
        )

    @classmethod
    async def connect_raw(
        cls,
        cmd: Socks5Command,
        host: str,
        port: int,
        target_host: str,
        target_port: int,
        auth: Optional[AuthenticationMethod] = None,
        config: Optional[Config] = None,
    ) -> "Socks5Stream":
        """Open a connection to the proxy, authenticate and send ``cmd``."""
        config = config if config is not None else Config()
        if config.connect_timeout is None:
            reader, writer = await tcp_connect(host, port)
        else:
            reader, writer = await tcp_connect_with_timeout(host, port, config.connect_timeout)
        log.info("Connected @ %s", writer.get_extra_info("peername"))
        try:
            try:
                target = to_target_addr((target_host, target_port))
            except (TypeError, ValueError) as exc:
                raise SocksError(f"Can't convert address to TargetAddr format: {exc}") from exc
            stream = await cls.use_stream(reader, writer, auth, config)
            await stream.request(cmd, target)
        except BaseException:
            writer.close()
            raise
        return stream

    async def read(self, n: int = -1) -> bytes:
        return await self.reader.read(n)

    async def readexactly(self, n: int) -> bytes:
        return await self.reader.readexactly(n)

    def write(self, data: bytes) -> None:
        self.writer.write(data)

    async def drain(self) -> None:
        await self.writer.drain()

    def close(self) -> None:
        self.writer.close()

    async def wait_closed(self) -> None:
        try:
            await self.writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> "Socks5Stream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
        await self.wait_closed()


async def _create_out_sock(bind_host: str, bind_port: int) -> socket.socket:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(bind_host, bind_port, type=socket.SOCK_DGRAM)
    except OSError as exc:
        raise SocksError(f"i/o error: {exc}") from exc
    if not infos:
        raise SocksError("unreachable")
    family, sock_type, proto, _, sockaddr = infos[0]
    sock = socket.socket(family, sock_type, proto)
    try:
        sock.setblocking(False)
        sock.bind(sockaddr)
    except OSError as exc:
        sock.close()
        raise SocksError(f"i/o error: {exc}") from exc
    log.info("UdpSocket client socket bind to %s", sock.getsockname())
    return sock


def _connect_udp(sock: socket.socket, target: TargetAddr) -> None:
    host, port = target.to_socket_address()
    if sock.family == socket.AF_INET6 and isinstance(target.host, ipaddress.IPv4Address):
        host = f"::ffff:{host}"
    try:
        sock.connect((host, port))
    except OSError as exc:
        raise SocksError(f"i/o error: {exc}") from exc


class Socks5Datagram:
    """A UDP socket whose traffic is relayed by a SOCKS5 proxy."""

    def __init__(
        self, sock: socket.socket, stream: Socks5Stream, proxy_addr: Optional[TargetAddr]
    ) -> None:
        self.sock = sock
        # The TCP control connection keeps the association alive.
        self.stream = stream
        self._proxy_addr = proxy_addr

    @classmethod
    async def bind(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        bind_host: str,
        bind_port: int,
    ) -> "Socks5Datagram":
        """Bind a local UDP socket and associate it through the proxy."""
        sock = await _create_out_sock(bind_host, bind_port)
        return await cls._bind_internal(reader, writer, sock, None)

    @classmethod
    async def bind_with_password(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        bind_host: str,
        bind_port: int,
        username: str,
        password: str,
    ) -> "Socks5Datagram":
        """Like bind, authenticating with a username and password."""
        sock = await _create_out_sock(bind_host, bind_port)
        return await cls._bind_internal(reader, writer, sock, PasswordAuth(username, password))

    @classmethod
    async def use_socket(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        sock: socket.socket,
    ) -> "Socks5Datagram":
        """Associate an already created UDP socket through the proxy."""
        sock.setblocking(False)
        return await cls._bind_internal(reader, writer, sock, None)

    @classmethod
    async def use_socket_with_password(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        sock: socket.socket,
        username: str,
        password: str,
    ) -> "Socks5Datagram":
        """Like use_socket, authenticating with a username and password."""
        sock.setblocking(False)
        return await cls._bind_internal(reader, writer, sock, PasswordAuth(username, password))

    @classmethod
    async def _bind_internal(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        sock: socket.socket,
        auth: Optional[AuthenticationMethod],
    ) -> "Socks5Datagram":
        try:
            stream = await Socks5Stream.use_stream(reader, writer, auth, Config())
            # Our address as seen by the proxy is unknown, so send the unspecified one.
            client_src = TargetAddr(ipaddress.IPv6Address("::"), 0)
            proxy_addr = await stream.request(Socks5Command.UDP_ASSOCIATE, client_src)
            log.info("UdpSocket client connecting to %s", proxy_addr)
            _connect_udp(sock, proxy_addr)
            log.info("UdpSocket client connected")
        except BaseException:
            sock.close()
            raise
        return cls(sock, stream, proxy_addr)

    async def send_to(self, data: bytes, target: Any) -> int:
        """Send ``data`` to ``target`` through the proxy; return the payload size."""
        packet = new_udp_header(target) + bytes(data)
        loop = asyncio.get_running_loop()
        try:
            await loop.sock_sendall(self.sock, packet)
        except OSError as exc:
            raise SocksError(f"i/o error: {exc}") from exc
        return len(data)

    async def recv_from(self) -> tuple[bytes, TargetAddr]:
        """Receive one datagram; return its payload and the address it came from."""
        loop = asyncio.get_running_loop()
        try:
            packet = await loop.sock_recv(self.sock, _MAX_DATAGRAM)
        except OSError as exc:
            raise SocksError(f"i/o error: {exc}") from exc
        frag, target, payload = parse_udp_request(packet)
        if frag != 0:
            raise SocksError("Unsupported frag value.")
        return payload, target

    def proxy_addr(self) -> TargetAddr:
        """Return the proxy-side UDP address all datagrams are routed through."""
        if self._proxy_addr is None:
            raise SocksError("proxy addr is not ready")
        return self._proxy_addr

    def close(self) -> None:
        self.sock.close()
        self.stream.close()

    async def __aenter__(self) -> "Socks5Datagram":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
        await self.stream.wait_closed()