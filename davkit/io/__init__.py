"""
Transport layer for WebDAV operations.

This module provides transports that send DAVRequest objects and feed
the resulting events (challenges, headers, body chunks, completion)
back to an exchange.

The transport layer is intentionally thin - it only handles HTTP.
All protocol logic (XML building/parsing) is in davkit.protocol, and
all lifecycle logic is in davkit.exchange.

Example (aiohttp):
    from davkit.io import AiohttpTransport

    async with AiohttpTransport() as transport:
        client = WebDAVClient("https://dav.example.com/", transport=transport)
        outcome = await client.get("/docs/readme.txt").run()

Example (requests, on worker threads):
    from davkit.io import RequestsTransport

    async with RequestsTransport() as transport:
        client = WebDAVClient("https://dav.example.com/", transport=transport)
        outcome = await client.get("/docs/readme.txt").run()
"""

from .base import Transport, TransportDelegate
from .sync import RequestsTransport
from .async_ import AiohttpTransport

__all__ = [
    # Protocols
    "Transport",
    "TransportDelegate",
    # Implementations
    "RequestsTransport",
    "AiohttpTransport",
]
