"""
Core protocol types for the sans-I/O WebDAV implementation.

These dataclasses represent HTTP requests, listing entries and the
terminal outcome of an operation, independent of any I/O implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from davkit.lib import error

DEFAULT_TIMEOUT = 60.0


class DAVMethod(Enum):
    """WebDAV HTTP methods."""

    GET = "GET"
    PUT = "PUT"
    DELETE = "DELETE"
    MKCOL = "MKCOL"
    COPY = "COPY"
    MOVE = "MOVE"
    PROPFIND = "PROPFIND"


@dataclass(frozen=True)
class DAVRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O. It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method (GET, PUT, PROPFIND, etc.)
        url: Full URL for the request
        headers: HTTP headers as dict
        body: Request body as bytes (optional)
        timeout: Total time the transport may spend on the exchange
        bypass_cache: Ask intermediaries not to serve a cached copy
    """

    method: DAVMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: float = DEFAULT_TIMEOUT
    bypass_cache: bool = True

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    def with_header(self, name: str, value: str) -> "DAVRequest":
        """Return new request with an added or replaced header."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return DAVRequest(
            method=self.method,
            url=self.url,
            headers=headers,
            body=self.body,
            timeout=self.timeout,
            bypass_cache=self.bypass_cache,
        )


@dataclass
class DirectoryEntry:
    """
    One resource from a PROPFIND listing.

    Attributes:
        href: Unquoted path of the resource
        is_collection: True for collections (directories)
        properties: Property tag (Clark notation) -> text value
    """

    href: str
    is_collection: bool = False
    properties: dict[str, Any] = field(default_factory=dict)
    display_name: Optional[str] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    etag: Optional[str] = None
    created: Optional[datetime] = None
    modified: Optional[datetime] = None


@dataclass(frozen=True)
class Success:
    """Terminal outcome of an exchange that completed."""

    result: Any = None

    ok = True


@dataclass(frozen=True)
class Failure:
    """Terminal outcome of an exchange that failed or was cancelled."""

    error: error.DAVError

    ok = False

    @property
    def code(self) -> error.ErrorCode:
        return self.error.code

    @property
    def status(self) -> Optional[int]:
        return self.error.status


Outcome = Union[Success, Failure]
