"""
The closed set of WebDAV verbs an operation can perform.

Each verb pairs an encoder (a :class:`WebDAVProtocol` request builder)
with an optional decoder (a :class:`WebDAVProtocol` response parser).
Verbs without a decoder produce no payload; success is the absence of
an error.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .operations import WebDAVProtocol
from .types import DAVMethod, DAVRequest

Encoder = Callable[..., DAVRequest]
Decoder = Callable[[WebDAVProtocol, bytes, Optional[int]], Any]


@dataclass(frozen=True)
class Verb:
    name: str
    method: DAVMethod
    encode: Encoder
    decode: Optional[Decoder] = None

    def __post_init__(self) -> None:
        if not callable(self.encode):
            raise TypeError("verb %s has no request encoder" % self.name)
        if self.decode is not None and not callable(self.decode):
            raise TypeError("verb %s has a decoder that is not callable" % self.name)


GET = Verb("get", DAVMethod.GET, WebDAVProtocol.get_request, WebDAVProtocol.parse_get)
PUT = Verb("put", DAVMethod.PUT, WebDAVProtocol.put_request)
DELETE = Verb("delete", DAVMethod.DELETE, WebDAVProtocol.delete_request)
MKCOL = Verb("mkcol", DAVMethod.MKCOL, WebDAVProtocol.mkcol_request)
COPY = Verb("copy", DAVMethod.COPY, WebDAVProtocol.copy_request)
MOVE = Verb("move", DAVMethod.MOVE, WebDAVProtocol.move_request)
LISTING = Verb(
    "listing", DAVMethod.PROPFIND, WebDAVProtocol.listing_request, WebDAVProtocol.parse_listing
)

VERBS: dict[str, Verb] = {
    verb.name: verb for verb in (GET, PUT, DELETE, MKCOL, COPY, MOVE, LISTING)
}


def verb_for(name: str) -> Verb:
    """
    Raises:
        KeyError: for anything but get, put, delete, mkcol, copy, move and listing
    """
    return VERBS[name.lower()]
