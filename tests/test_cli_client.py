import socket
import threading

import pytest

from asocks5.cli_client import build_http_request, http_request, main
from asocks5.errors import SocksError


class FakeStream:
    def __init__(self, response=b"", fail_write=False):
        self.written = b""
        self.response = response
        self.fail_write = fail_write
        self.drained = False

    def write(self, data):
        if self.fail_write:
            raise ConnectionResetError("reset")
        self.written += data

    async def drain(self):
        self.drained = True

    async def read(self, n=-1):
        return self.response[:n]


def _recv_exact(conn, n):
    data = b""
    while len(data) < n:
        chunk = conn.recv(n - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _recv_until(conn, marker):
    data = b""
    while marker not in data:
        chunk = conn.recv(1024)
        if not chunk:
            break
        data += chunk
    return data


def _serve(listener, record, credentials=False):
    conn, _ = listener.accept()
    with conn:
        conn.settimeout(5)
        record["greeting"] = _recv_exact(conn, 4 if credentials else 3)
        if credentials:
            conn.sendall(b"\x05\x02")
            header = _recv_exact(conn, 2)
            user = _recv_exact(conn, header[1])
            plen = _recv_exact(conn, 1)
            secret = _recv_exact(conn, plen[0])
            record["auth"] = header + user + plen + secret
            conn.sendall(b"\x01\x00")
        else:
            conn.sendall(b"\x05\x00")
        record["request"] = _recv_exact(conn, 18)
        conn.sendall(b"\x05\x00\x00\x01\x7f\x00\x00\x01\x00\x50")
        record["http"] = _recv_until(conn, b"\r\n\r\n")
        conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")


def _start_server(credentials=False):
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    record = {}
    thread = threading.Thread(target=_serve, args=(listener, record, credentials), daemon=True)
    thread.start()
    return listener, thread, record


def test_build_http_request_layout():
    request = build_http_request("example.com")
    assert request.startswith(b"GET / HTTP/1.1\r\nHost: example.com\r\n")
    assert request.endswith(b"\r\nAccept: */*\r\n\r\n")
    assert request.count(b"\r\n\r\n") == 1


def test_build_http_request_uses_domain():
    assert b"Host: perdu.com\r\n" in build_http_request("perdu.com")


@pytest.mark.asyncio
async def test_http_request_writes_and_returns_response():
    stream = FakeStream(response=b"HTTP/1.1 200 OK\r\n\r\nbody")
    response = await http_request(stream, "example.com")
    assert response == b"HTTP/1.1 200 OK\r\n\r\nbody"
    assert stream.written == build_http_request("example.com")
    assert stream.drained is True


@pytest.mark.asyncio
async def test_http_request_reads_at_most_one_chunk():
    stream = FakeStream(response=b"x" * 5000)
    response = await http_request(stream, "example.com")
    assert len(response) == 1024


@pytest.mark.asyncio
async def test_http_request_write_failure_raises():
    with pytest.raises(SocksError):
        await http_request(FakeStream(fail_write=True), "example.com")


def test_main_no_auth_through_mock_proxy():
    listener, thread, record = _start_server()
    with listener:
        port = listener.getsockname()[1]
        status = main(["-s", f"127.0.0.1:{port}", "-a", "example.com", "-p", "80"])
        thread.join(5)
    assert status == 0
    assert record["greeting"] == b"\x05\x01\x00"
    assert record["request"] == b"\x05\x01\x00\x03\x0bexample.com\x00\x50"
    assert record["http"] == build_http_request("example.com")


def test_main_with_password_through_mock_proxy():
    listener, thread, record = _start_server(credentials=True)
    password = "password"
    with listener:
        port = listener.getsockname()[1]
        status = main([
            "-s", f"127.0.0.1:{port}", "-a", "example.com", "-p", "80",
            "-u", "user", "--password", password,
        ])
        thread.join(5)
    assert status == 0
    assert record["greeting"] == b"\x05\x02\x00\x02"
    assert record["auth"] == b"\x01\x04user\x08password"


def test_main_requires_password_with_username():
    with pytest.raises(SystemExit) as info:
        main(["-s", "127.0.0.1:1080", "-a", "example.com", "-p", "80", "-u", "user"])
    assert info.value.code == 2


def test_main_rejects_bad_server_address():
    with pytest.raises(SystemExit) as info:
        main(["-s", "no-port-here", "-a", "example.com", "-p", "80"])
    assert info.value.code == 2


def test_main_reports_refused_connection():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["-s", f"127.0.0.1:{port}", "-a", "example.com", "-p", "80"]) == 1