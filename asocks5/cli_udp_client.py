"""Command-line DNS client whose UDP query is relayed by a SOCKS5 proxy."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import logging
import sys
from typing import Any, Optional, Protocol, Sequence

from asocks5.client import Socks5Datagram
from asocks5.errors import SocksError
from asocks5.stream import tcp_connect
from asocks5.target_addr import TargetAddr

log = logging.getLogger(__name__)

_QUERY_ID = b"\x13\x37"
_QUERY_HEADER = (
    _QUERY_ID
    + b"\x01\x00"  # flags
    + b"\x00\x01"  # questions
    + b"\x00\x00"  # answer RRs
    + b"\x00\x00"  # authority RRs
    + b"\x00\x00"  # additional RRs
)
_QUERY_TRAILER = b"\x00\x00\x01\x00\x01"  # root label, QTYPE A, QCLASS IN
_DEFAULT_DNS_PORT = 53


class _Datagram(Protocol):
    async def send_to(self, data: bytes, target: Any) -> int: ...

    async def recv_from(self) -> tuple[bytes, TargetAddr]: ...


def build_dns_query(domain: str) -> bytes:
    """Return a DNS query for the A record of ``domain``."""
    labels = bytearray()
    for part in domain.split("."):
        try:
            raw = part.encode("ascii")
        except UnicodeEncodeError:
            raise ValueError(f"non-ASCII label in domain: {part!r}") from None
        if len(raw) > 0xFF:
            raise ValueError(f"label too long: {len(raw)} bytes")
        labels.append(len(raw))
        labels += raw
    return _QUERY_HEADER + bytes(labels) + _QUERY_TRAILER


async def dns_request(
    datagram: _Datagram, server: str, port: int, domain: str
) -> tuple[bytes, TargetAddr]:
    """Query ``server``:``port`` for ``domain``; return the response and its sender."""
    log.debug("Requesting results...")
    query = build_dns_query(domain)
    log.debug("query: %s", list(query))
    await datagram.send_to(query, (server, port))

    response, sender = await datagram.recv_from()
    log.info("response: %s from %s", list(response), sender)
    if response[:2] != _QUERY_ID:
        raise SocksError("DNS response does not match the query id")
    return response, sender


def _port(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 0 <= number <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"port out of range: {value!r}")
    return number


def _host_port(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, _port(port)


def _unspecified_for(host: str) -> str:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return "0.0.0.0"
    return "::" if isinstance(address, ipaddress.IPv6Address) else "0.0.0.0"


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="socks5-udp-client",
        description="A simple example of a socks5 UDP client (proxied DNS client).",
    )
    parser.add_argument(
        "-s", "--socks-server", required=True, type=_host_port,
        help="Socks5 server address + port, e.g. 127.0.0.1:1080",
    )
    parser.add_argument(
        "-a", "--target-server", required=True,
        help="Target (DNS) server address, e.g. 8.8.8.8",
    )
    parser.add_argument(
        "-p", "--target-port", type=_port, default=_DEFAULT_DNS_PORT,
        help="Target (DNS) server port, by default 53",
    )
    parser.add_argument("-d", "--query-domain", required=True)
    parser.add_argument("-u", "--username")
    parser.add_argument("--password")
    return parser


async def _run(opts: argparse.Namespace) -> None:
    host, port = opts.socks_server
    reader, writer = await tcp_connect(host, port)
    # The local socket should use the same protocol family as the proxy.
    bind_host = _unspecified_for(host)
    try:
        if opts.username is not None:
            datagram = await Socks5Datagram.bind_with_password(
                reader, writer, bind_host, 0, opts.username, opts.password
            )
        else:
            datagram = await Socks5Datagram.bind(reader, writer, bind_host, 0)
    except BaseException:
        writer.close()
        raise
    async with datagram:
        await dns_request(datagram, opts.target_server, opts.target_port, opts.query_domain)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the client; return the process exit status."""
    parser = _parser()
    opts = parser.parse_args(argv)
    if opts.username is not None and opts.password is None:
        parser.error("Please fill the password")
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(_run(opts))
    except (SocksError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())