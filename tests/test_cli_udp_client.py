import ipaddress
import socket
import threading

import pytest

from asocks5.cli_udp_client import build_dns_query, dns_request, main
from asocks5.errors import SocksError
from asocks5.target_addr import TargetAddr

HEADER = bytes.fromhex("1337" "0100" "0001" "0000" "0000" "0000")


class FakeDatagram:
    def __init__(self, response, sender):
        self.response = response
        self.sender = sender
        self.sent = []

    async def send_to(self, data, target):
        self.sent.append((data, target))
        return len(data)

    async def recv_from(self):
        return self.response, self.sender


def _recv_exact(conn, n):
    data = b""
    while len(data) < n:
        chunk = conn.recv(n - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _serve(listener, relay, record):
    conn, _ = listener.accept()
    with conn:
        conn.settimeout(5)
        record["greeting"] = _recv_exact(conn, 3)
        conn.sendall(b"\x05\x00")
        record["request"] = _recv_exact(conn, 22)
        relay_port = relay.getsockname()[1]
        conn.sendall(b"\x05\x00\x00\x01" + socket.inet_aton("127.0.0.1") + relay_port.to_bytes(2, "big"))
        packet, client = relay.recvfrom(4096)
        record["packet"] = packet
        answer = b"\x13\x37\x81\x80" + packet[12 + 10 + 2:]
        relay.sendto(b"\x00\x00\x00\x01\x7f\x00\x00\x01\x00\x35" + answer, client)
        while conn.recv(1024):
            pass


def test_build_dns_query_matches_wire_format():
    expected = HEADER + bytes.fromhex("076578616d706c65" "03636f6d00" "0001" "0001")
    assert build_dns_query("example.com") == expected


def test_build_dns_query_label_count():
    query = build_dns_query("a.b.c")
    assert query[len(HEADER):] == b"\x01a\x01b\x01c\x00\x00\x01\x00\x01"


def test_build_dns_query_rejects_non_ascii():
    with pytest.raises(ValueError):
        build_dns_query("exämple.com")


def test_build_dns_query_rejects_oversized_label():
    with pytest.raises(ValueError):
        build_dns_query("a" * 300 + ".com")


@pytest.mark.asyncio
async def test_dns_request_sends_query_and_returns_response():
    sender = TargetAddr(ipaddress.ip_address("127.0.0.1"), 53)
    datagram = FakeDatagram(b"\x13\x37\x81\x80rest", sender)
    response, origin = await dns_request(datagram, "127.0.0.1", 53, "github.com")
    assert response == b"\x13\x37\x81\x80rest"
    assert origin == sender
    assert datagram.sent == [(build_dns_query("github.com"), ("127.0.0.1", 53))]


@pytest.mark.asyncio
async def test_dns_request_rejects_wrong_query_id():
    sender = TargetAddr(ipaddress.ip_address("127.0.0.1"), 53)
    datagram = FakeDatagram(b"\xaa\xaa\x81\x80", sender)
    with pytest.raises(SocksError):
        await dns_request(datagram, "127.0.0.1", 53, "github.com")


def test_main_through_mock_udp_proxy():
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    relay = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    relay.bind(("127.0.0.1", 0))
    relay.settimeout(5)
    record = {}
    thread = threading.Thread(target=_serve, args=(listener, relay, record), daemon=True)
    thread.start()
    with listener, relay:
        port = listener.getsockname()[1]
        status = main(["-s", f"127.0.0.1:{port}", "-a", "127.0.0.1", "-d", "github.com"])
        thread.join(5)
    assert status == 0
    assert record["greeting"] == b"\x05\x01\x00"
    assert record["request"][:4] == b"\x05\x03\x00\x04"
    assert record["packet"] == (
        b"\x00\x00\x00\x01\x7f\x00\x00\x01\x00\x35" + build_dns_query("github.com")
    )


def test_main_requires_password_with_username():
    with pytest.raises(SystemExit) as info:
        main(["-s", "127.0.0.1:1080", "-a", "127.0.0.1", "-d", "github.com", "-u", "user"])
    assert info.value.code == 2


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["-s", "127.0.0.1:1080", "-a", "127.0.0.1", "-p", "70000", "-d", "github.com"])
    assert info.value.code == 2


def test_main_reports_refused_connection():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["-s", f"127.0.0.1:{port}", "-a", "127.0.0.1", "-d", "github.com"]) == 1