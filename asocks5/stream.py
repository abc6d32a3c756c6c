"""TCP connection helpers that classify connection failures."""

from __future__ import annotations

import asyncio
import errno

from asocks5.errors import ConnectError, ConnectErrorKind


def _classify(exc: OSError) -> ConnectErrorKind:
    if isinstance(exc, ConnectionRefusedError):
        return ConnectErrorKind.REFUSED
    if isinstance(exc, ConnectionAbortedError):
        return ConnectErrorKind.ABORTED
    if isinstance(exc, ConnectionResetError):
        return ConnectErrorKind.RESET
    if exc.errno == errno.ENOTCONN:
        return ConnectErrorKind.NOT_CONNECTED
    return ConnectErrorKind.OTHER


async def tcp_connect(host: str, port: int) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a TCP connection, raising ConnectError on failure."""
    try:
        return await asyncio.open_connection(host, port)
    except OSError as exc:
        raise ConnectError(_classify(exc), exc) from exc


async def tcp_connect_with_timeout(
    host: str, port: int, timeout: float
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Like tcp_connect, giving up after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(tcp_connect(host, port), timeout)
    except asyncio.TimeoutError:
        raise ConnectError(ConnectErrorKind.TIMEOUT) from None