"""Asynchronous SOCKS5 and SOCKS4/4a client for asyncio, with SOCKS5 UDP associate."""

__version__ = "1.0.0rc0"

__all__ = ["__version__"]