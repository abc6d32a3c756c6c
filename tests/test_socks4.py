import asyncio
import ipaddress

import pytest

from asocks5.errors import SocksError
from asocks5.socks4 import (
    Socks4Command,
    Socks4Reply,
    Socks4ReplyError,
    Socks4Stream,
)
from asocks5.target_addr import TargetAddr


async def _proxy(response: bytes):
    received = asyncio.get_running_loop().create_future()

    async def handle(reader, writer):
        try:
            data = await reader.readexactly(260)
            received.set_result(data)
            writer.write(response)
            await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            if not received.done():
                received.set_result(b"")
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port, received


@pytest.mark.parametrize("command", list(Socks4Command))
def test_command_round_trip(command):
    assert Socks4Command.from_u8(command.as_u8()) is command


def test_unknown_command():
    assert Socks4Command.from_u8(0x03) is None


@pytest.mark.parametrize(
    "reply",
    [
        Socks4Reply.SUCCEEDED,
        Socks4Reply.GENERAL_FAILURE,
        Socks4Reply.HOST_UNREACHABLE,
        Socks4Reply.INVALID_USER,
    ],
)
def test_reply_round_trip(reply):
    assert Socks4Reply.from_u8(reply.as_u8()) is reply


def test_reply_codes():
    assert Socks4Reply.SUCCEEDED.as_u8() == 0x5A
    assert Socks4Reply.INVALID_USER.as_u8() == 0x5D


def test_unknown_reply():
    assert Socks4Reply.from_u8(0x00) is Socks4Reply.UNKNOWN_RESPONSE


@pytest.mark.parametrize(
    "reply", [Socks4Reply.ADDRESS_TYPE_NOT_SUPPORTED, Socks4Reply.UNKNOWN_RESPONSE]
)
def test_reply_without_code(reply):
    with pytest.raises(ValueError):
        reply.as_u8()


@pytest.mark.asyncio
async def test_connect_ipv4():
    server, port, received = await _proxy(b"\x00\x5a" + b"hello")
    async with server:
        stream = await Socks4Stream.connect("127.0.0.1", port, "10.0.0.1", 80)
        packet = await received
        data = await stream.read(5)
        await stream.close()
    assert len(packet) == 260
    assert packet[:8] == bytes([0x04, 0x01, 0x00, 0x50, 10, 0, 0, 1])
    assert packet[8:] == bytes(252)
    assert data == b"hello"
    assert stream.target == TargetAddr(ipaddress.IPv4Address("10.0.0.1"), 80)


@pytest.mark.asyncio
async def test_domain_sent_to_proxy():
    server, port, received = await _proxy(b"\x00\x5a")
    async with server:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        stream = Socks4Stream.use_stream(reader, writer)
        await stream.request(Socks4Command.CONNECT, TargetAddr("te.st", 80), False)
        packet = await received
        await stream.close()
    assert packet[:8] == bytes([0x04, 0x01, 0x00, 0x50, 0, 0, 0, 1])
    assert packet[8:13] == b"te.st"
    assert stream.target.is_domain()


@pytest.mark.asyncio
async def test_bind_command_byte():
    server, port, received = await _proxy(b"\x00\x5a")
    async with server:
        stream = await Socks4Stream.connect_raw(
            Socks4Command.BIND, "127.0.0.1", port, "127.0.0.1", 21
        )
        packet = await received
        await stream.close()
    assert packet[1] == Socks4Command.BIND.as_u8()


@pytest.mark.asyncio
async def test_rejected_request():
    server, port, _ = await _proxy(b"\x00\x5b")
    async with server:
        with pytest.raises(Socks4ReplyError) as info:
            await Socks4Stream.connect("127.0.0.1", port, "10.0.0.1", 80)
    assert info.value.reply is Socks4Reply.GENERAL_FAILURE
    assert info.value.code == 0x5B


@pytest.mark.asyncio
async def test_unknown_reply_code_raises():
    server, port, _ = await _proxy(b"\x00\x01")
    async with server:
        with pytest.raises(Socks4ReplyError) as info:
            await Socks4Stream.connect("127.0.0.1", port, "10.0.0.1", 80)
    assert info.value.reply is Socks4Reply.UNKNOWN_RESPONSE


@pytest.mark.asyncio
async def test_ipv6_not_supported():
    server, port, _ = await _proxy(b"")
    async with server:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        stream = Socks4Stream.use_stream(reader, writer)
        with pytest.raises(Socks4ReplyError) as info:
            await stream.request(
                Socks4Command.CONNECT, TargetAddr(ipaddress.IPv6Address("::1"), 80), False
            )
        await stream.close()
    assert info.value.reply is Socks4Reply.ADDRESS_TYPE_NOT_SUPPORTED


@pytest.mark.asyncio
async def test_truncated_reply():
    server, port, _ = await _proxy(b"\x00")
    async with server:
        with pytest.raises(SocksError):
            await Socks4Stream.connect("127.0.0.1", port, "10.0.0.1", 80)


@pytest.mark.asyncio
async def test_resolve_locally_keeps_ip_target():
    server, port, received = await _proxy(b"\x00\x5a")
    async with server:
        stream = await Socks4Stream.connect("127.0.0.1", port, "127.0.0.1", 8080, True)
        packet = await received
        await stream.close()
    assert packet[4:8] == bytes([127, 0, 0, 1])
    assert stream.target.is_ip()