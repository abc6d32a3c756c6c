"""Exceptions and reply codes shared by the SOCKS clients."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class SocksError(Exception):
    """Base class for every error raised by this package."""


class Reply(Enum):
    """SOCKS5 reply codes, valued by their human-readable description."""

    SUCCEEDED = "Succeeded"
    GENERAL_FAILURE = "General failure"
    CONNECTION_NOT_ALLOWED = "Connection not allowed by ruleset"
    NETWORK_UNREACHABLE = "Network unreachable"
    HOST_UNREACHABLE = "Host unreachable"
    CONNECTION_REFUSED = "Connection refused"
    CONNECTION_TIMEOUT = "Connection timeout"
    TTL_EXPIRED = "TTL expired"
    COMMAND_NOT_SUPPORTED = "Command not supported"
    ADDRESS_TYPE_NOT_SUPPORTED = "Address type not supported"

    def __str__(self) -> str:
        return self.value

    def as_u8(self) -> int:
        """Return the wire code of this reply."""
        return _REPLY_CODES[self]

    @classmethod
    def from_u8(cls, code: int) -> "Reply":
        """Return the reply for a wire code; raise ValueError for unknown codes."""
        try:
            return _REPLY_BY_CODE[code]
        except KeyError:
            raise ValueError(f"ReplyError code unsupported: {code}") from None


_REPLY_CODES = {
    Reply.SUCCEEDED: 0x00,
    Reply.GENERAL_FAILURE: 0x01,
    Reply.CONNECTION_NOT_ALLOWED: 0x02,
    Reply.NETWORK_UNREACHABLE: 0x03,
    Reply.HOST_UNREACHABLE: 0x04,
    Reply.CONNECTION_REFUSED: 0x05,
    Reply.CONNECTION_TIMEOUT: 0x06,
    Reply.TTL_EXPIRED: 0x06,
    Reply.COMMAND_NOT_SUPPORTED: 0x07,
    Reply.ADDRESS_TYPE_NOT_SUPPORTED: 0x08,
}

_REPLY_BY_CODE = {
    code: reply
    for reply, code in _REPLY_CODES.items()
    if reply is not Reply.CONNECTION_TIMEOUT
}


class ReplyError(SocksError):
    """The server answered a request with a failure reply."""

    def __init__(self, reply: Reply) -> None:
        super().__init__(f"Error with reply: {reply.value}.")
        self.reply = reply


class UnsupportedSocksVersion(SocksError):
    """The peer speaks a SOCKS version other than the expected one."""

    def __init__(self, version: int) -> None:
        super().__init__(f"Unsupported SOCKS version `{version}`.")
        self.version = version


class AuthMethodUnacceptable(SocksError):
    """None of the offered authentication methods is acceptable."""

    def __init__(self, methods: Iterable[int]) -> None:
        self.methods = list(methods)
        super().__init__(f"Auth method unacceptable `{self.methods}`.")


class AuthenticationRejected(SocksError):
    """The server refused the supplied credentials."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Authentication rejected `{reason}`")
        self.reason = reason


class ExceededMaxDomainLen(SocksError):
    """A domain name is too long to fit in a SOCKS5 request."""

    def __init__(self, length: int) -> None:
        super().__init__("Domain exceeded max sequence length")
        self.length = length


class ArgumentInputError(SocksError):
    """Invalid combination of user-supplied arguments."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Argument input error: `{message}`.")
        self.message = message


class UdpHeaderError(SocksError):
    """A SOCKS5 UDP datagram header could not be built or parsed."""


class AddrError(SocksError):
    """An address could not be read, encoded or resolved."""

    def to_reply_error(self) -> Reply:
        """Return the reply a server would send for this error."""
        return Reply.CONNECTION_REFUSED


class IncorrectAddressType(AddrError):
    """The address type byte is not one of IPv4, domain or IPv6."""

    def __init__(self, message: str = "Unknown address type") -> None:
        super().__init__(message)

    def to_reply_error(self) -> Reply:
        return Reply.ADDRESS_TYPE_NOT_SUPPORTED


class ConnectErrorKind(Enum):
    """Why an outgoing TCP connection failed."""

    TIMEOUT = "Connection timed out"
    REFUSED = "Connection refused"
    ABORTED = "Connection aborted"
    RESET = "Connection reset"
    NOT_CONNECTED = "Not connected"
    OTHER = "Other i/o error"


_CONNECT_REPLIES = {
    ConnectErrorKind.TIMEOUT: Reply.CONNECTION_TIMEOUT,
    ConnectErrorKind.REFUSED: Reply.CONNECTION_REFUSED,
    ConnectErrorKind.ABORTED: Reply.CONNECTION_NOT_ALLOWED,
    ConnectErrorKind.RESET: Reply.CONNECTION_NOT_ALLOWED,
    ConnectErrorKind.NOT_CONNECTED: Reply.NETWORK_UNREACHABLE,
    ConnectErrorKind.OTHER: Reply.GENERAL_FAILURE,
}


class ConnectError(SocksError):
    """An outgoing TCP connection could not be established."""

    def __init__(self, kind: ConnectErrorKind, cause: BaseException | None = None) -> None:
        if cause is None:
            message = kind.value
        else:
            message = f"{kind.value}: {cause}"
        super().__init__(message)
        self.kind = kind
        self.cause = cause

    def to_reply_error(self) -> Reply:
        """Return the reply a server would send for this failure."""
        return _CONNECT_REPLIES[self.kind]