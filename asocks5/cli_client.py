"""Command-line SOCKS5 client that fetches ``/`` from a web server through a proxy."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Protocol, Sequence

from asocks5.client import Config, Socks5Stream
from asocks5.errors import SocksError

log = logging.getLogger(__name__)

_USER_AGENT = "asocks5/0.1.0"
_RESPONSE_CHUNK = 1024


class _ByteStream(Protocol):
    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    async def read(self, n: int = -1) -> bytes: ...


def build_http_request(domain: str) -> bytes:
    """Return the bytes of a ``GET /`` request for ``domain``."""
    return (
        b"GET / HTTP/1.1\r\nHost: "
        + domain.encode("utf-8")
        + f"\r\nUser-Agent: {_USER_AGENT}\r\nAccept: */*\r\n\r\n".encode("ascii")
    )


async def http_request(stream: _ByteStream, domain: str) -> bytes:
    """Send a ``GET /`` request over ``stream`` and return the first chunk of the answer."""
    log.debug("Requesting body...")
    try:
        stream.write(build_http_request(domain))
        await stream.drain()
    except OSError as exc:
        raise SocksError(f"Can't write HTTP Headers: {exc}") from exc

    log.debug("Reading body response...")
    try:
        response = await stream.read(_RESPONSE_CHUNK)
    except OSError as exc:
        raise SocksError(f"Can't read HTTP Response: {exc}") from exc

    log.info("Response: %s", response.decode("utf-8", errors="replace"))
    if response.startswith(b"HTTP/1.1"):
        log.info("HTTP/1.1 Response detected!")
    return response


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


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="socks5-client", description="A simple example of a socks5-client."
    )
    parser.add_argument(
        "-s", "--socks-server", required=True, type=_host_port,
        help="Socks5 server address + port, e.g. 127.0.0.1:1080",
    )
    parser.add_argument(
        "-a", "--target-addr", required=True,
        help="Target address server (not the socks server)",
    )
    parser.add_argument(
        "-p", "--target-port", required=True, type=_port,
        help="Target port server (not the socks server)",
    )
    parser.add_argument("-u", "--username")
    parser.add_argument("--password")
    parser.add_argument(
        "-k", "--skip-auth", action="store_true",
        help="Don't perform the auth handshake, send directly the command request",
    )
    return parser


async def _run(opts: argparse.Namespace) -> None:
    host, port = opts.socks_server
    config = Config(skip_auth=opts.skip_auth)
    if opts.username is not None:
        stream = await Socks5Stream.connect_with_password(
            host, port, opts.target_addr, opts.target_port,
            opts.username, opts.password, config,
        )
    else:
        stream = await Socks5Stream.connect(
            host, port, opts.target_addr, opts.target_port, config
        )
    async with stream:
        await http_request(stream, opts.target_addr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the client; return the process exit status."""
    parser = _parser()
    opts = parser.parse_args(argv)
    if opts.username is not None and opts.password is None:
        parser.error("Please fill the password")
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(_run(opts))
    except (SocksError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())