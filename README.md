# asocks5

An asyncio SOCKS client library with two small command-line tools. It covers:

- SOCKS5 CONNECT with no authentication or username/password authentication
- SOCKS5 UDP ASSOCIATE, with a datagram wrapper that adds and strips the UDP request header
- an optional "skip auth" mode (`Config(skip_auth=True)`) that sends the command request
  straight away, for servers configured to accept it (not RFC compliant, saves a round trip)
- SOCKS4 CONNECT, and SOCKS4a when a domain-name target is left for the proxy to resolve
- IPv4, IPv6 and domain-name targets
- SOCKS5 failure replies raised as exceptions carrying the reply code

It has no dependencies outside the standard library.

## Installation

```
pip install asocks5
```

For running the test suite:

```
pip install "asocks5[test]"
pytest
```

## Modules

- `asocks5.client` – `Config`, `Socks5Stream` and `Socks5Datagram`
- `asocks5.socks4` – `Socks4Stream`, `Socks4Command`, `Socks4Reply`, `Socks4ReplyError`
- `asocks5.protocol` – `Socks5Command`, the `NoAuth` and `PasswordAuth` methods,
  `new_udp_header` and `parse_udp_request`
- `asocks5.target_addr` – `TargetAddr`, `to_target_addr`, `parse_address`, `read_address`
- `asocks5.stream` – `tcp_connect` and `tcp_connect_with_timeout`
- `asocks5.errors` – the exception classes and the `Reply` enum

## Using the library

### TCP through a SOCKS5 proxy

```python
import asyncio

from asocks5.client import Config, Socks5Stream


async def fetch() -> bytes:
    stream = await Socks5Stream.connect("127.0.0.1", 1080, "example.com", 80, Config())
    async with stream:
        stream.write(b"GET / HTTP/1.1\r\nHost: example.com\r\n\r\n")
        await stream.drain()
        return await stream.read(1024)


print(asyncio.run(fetch()))
```

With username/password authentication:

```python
password = "password"
stream = await Socks5Stream.connect_with_password(
    "127.0.0.1", 1080, "example.com", 80, "admin", password, Config()
)
```

`Config(connect_timeout=5)` limits the time spent connecting to the proxy; on timeout a
`ConnectError` is raised.

If you already hold an open connection to the proxy, pass its reader and writer to
`Socks5Stream.use_stream` (which performs the method negotiation) and then issue the
command yourself with `Socks5Stream.request`, giving a `Socks5Command` and a
`TargetAddr`. `request` returns the address the server reports as bound.
`Socks5Stream.connect_raw` does the connecting and the request for any `Socks5Command`.

Domain names are sent to the proxy as they are and resolved on its side. Use
`to_target_addr` to turn a `(host, port)` tuple into a `TargetAddr`; IPv4 and IPv6
literals become IP targets, anything else a domain target. `TargetAddr.resolve_dns()`
resolves a domain target locally.

### UDP through a SOCKS5 proxy

`Socks5Datagram` keeps the TCP control connection open for the lifetime of the
association and sends datagrams to the relay address the proxy returns
(available as `proxy_addr()`).

```python
import asyncio

from asocks5.client import Socks5Datagram


async def query(payload: bytes) -> bytes:
    reader, writer = await asyncio.open_connection("127.0.0.1", 1080)
    async with await Socks5Datagram.bind(reader, writer, "0.0.0.0", 0) as datagram:
        await datagram.send_to(payload, ("8.8.8.8", 53))
        data, source = await datagram.recv_from()
    return data
```

`send_to` accepts a `TargetAddr` or a `(host, port)` tuple and returns the payload size.
`recv_from` returns the payload and the address it came from; fragmented datagrams are
refused with a `SocksError`. `Socks5Datagram.bind_with_password` does the same as `bind`
with credentials, and `Socks5Datagram.use_socket` / `use_socket_with_password` accept a
UDP socket you have already created.

### SOCKS4 and SOCKS4a

```python
from asocks5.socks4 import Socks4Stream

stream = await Socks4Stream.connect("127.0.0.1", 1080, "example.com", 80, True)
async with stream:
    ...
```

With `resolve_locally=True` the domain is looked up on this machine and a plain SOCKS4
request is sent; with `False` the name is passed to the proxy (SOCKS4a). IPv6 targets
are refused with `Socks4ReplyError`. No user ID is sent with the request.

### Errors

All protocol failures derive from `asocks5.errors.SocksError`. A failure reply from a
SOCKS5 server raises `ReplyError`, whose `reply` attribute is the `Reply` code; a refused
handshake raises `AuthMethodUnacceptable` or `AuthenticationRejected`; a server speaking
another version raises `UnsupportedSocksVersion`; a failed connection to the proxy raises
`ConnectError`, whose `to_reply_error()` gives the matching `Reply`. Address problems
raise `AddrError` (or `IncorrectAddressType`), UDP header problems `UdpHeaderError`.
SOCKS4 failures raise `Socks4ReplyError`.

## Command-line tools

Both tools log at INFO level and exit with status 1 after printing the error when the
proxy exchange fails.

### `asocks5-client`

Sends a `GET /` over HTTP/1.1 to a target through a SOCKS5 proxy and logs the first
1024 bytes of the response.

```
asocks5-client --socks-server 127.0.0.1:1080 -a example.com -p 80
asocks5-client --socks-server 127.0.0.1:1080 --username admin --password password -a 192.0.2.10 -p 80
```

Add `-k` / `--skip-auth` to send the command request without the authentication
handshake.

### `asocks5-udp-client`

Sends a DNS query for the A record of a domain through the proxy's UDP relay, logs the
answer and checks that its query id matches.

```
asocks5-udp-client --socks-server 127.0.0.1:1080 -a 8.8.8.8 -d example.com
asocks5-udp-client --socks-server 127.0.0.1:1080 --username admin --password password -a dns.google -p 53 -d example.com
```

The target port defaults to 53.

## What it does not do

This is a client library only. It contains no SOCKS server: nothing here accepts
connections from clients, authenticates them or relays their traffic. Only the
client side of SOCKS4/4a is provided, and the SOCKS5 BIND command gets no special
handling beyond sending the request and reading the first reply.