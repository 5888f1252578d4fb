"""
WebDAV protocol operations combining request building and response parsing.

This class provides the per-verb encoders and decoders while remaining
completely I/O-free.
"""

from typing import Any, Optional, Union

from davkit.lib import error
from davkit.lib.python_utilities import to_wire
from davkit.lib.url import URL

from .types import DEFAULT_TIMEOUT, DAVMethod, DAVRequest
from .xml_builders import build_propfind_body
from .xml_parsers import parse_listing

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class WebDAVProtocol:
    """
    Sans-I/O WebDAV protocol handler.

    Builds requests and parses responses without doing any I/O.
    All HTTP communication is delegated to a transport.

    Example:
        protocol = WebDAVProtocol(base_url="https://dav.example.com/")

        # Build request
        request = protocol.listing_request("/docs/", depth=1)

        # Execute with your I/O (not shown), collecting the body

        # Parse response
        entries = protocol.parse_listing(body, 207)
    """

    def __init__(
        self,
        base_url: Union[str, URL] = "",
        timeout: float = DEFAULT_TIMEOUT,
        huge_tree: bool = False,
    ):
        """
        Args:
            base_url: Base URL of the WebDAV server, all paths are appended to it
            timeout: Timeout applied to every request
            huge_tree: Allow parsing very large listings
        """
        self.base_url = URL.objectify(base_url).unauth().base()
        self.timeout = timeout
        self.huge_tree = huge_tree

    def _resolve_url(self, path: Optional[str]) -> str:
        return str(self.base_url.append(path or ""))

    def _new_request(
        self,
        path: Optional[str],
        method: DAVMethod,
        headers: Optional[dict] = None,
        body: Optional[bytes] = None,
    ) -> DAVRequest:
        return DAVRequest(
            method=method,
            url=self._resolve_url(path),
            headers=headers or {},
            body=body,
            timeout=self.timeout,
            bypass_cache=True,
        )

    # =========================================================================
    # Request builders
    # =========================================================================

    def get_request(self, path: str) -> DAVRequest:
        return self._new_request(path, DAVMethod.GET)

    def delete_request(self, path: str) -> DAVRequest:
        return self._new_request(path, DAVMethod.DELETE)

    def mkcol_request(self, path: str) -> DAVRequest:
        return self._new_request(path, DAVMethod.MKCOL)

    def put_request(
        self,
        path: str,
        data: Union[bytes, str, None] = None,
        content_type: Optional[str] = None,
    ) -> DAVRequest:
        """
        Build a PUT request uploading ``data``.  Text is sent as UTF-8.

        Raises:
            MissingParameter: if no data is given
        """
        if data is None:
            raise error.MissingParameter(
                url=self._resolve_url(path), reason="PUT requires data"
            )
        body = to_wire(data)
        headers = {
            "Content-Type": content_type or DEFAULT_CONTENT_TYPE,
            "Content-Length": str(len(body)),
        }
        return self._new_request(path, DAVMethod.PUT, headers, body)

    def copy_request(
        self,
        path: str,
        destination: Optional[str] = None,
        overwrite: bool = False,
    ) -> DAVRequest:
        """
        Build a COPY request.  The Destination header carries the
        absolute URL of ``destination``, resolved against the base URL.

        Raises:
            MissingParameter: if no destination is given
        """
        return self._transfer_request(DAVMethod.COPY, path, destination, overwrite)

    def move_request(
        self,
        path: str,
        destination: Optional[str] = None,
        overwrite: bool = False,
    ) -> DAVRequest:
        """Same as :meth:`copy_request`, with the MOVE method"""
        return self._transfer_request(DAVMethod.MOVE, path, destination, overwrite)

    def _transfer_request(
        self,
        method: DAVMethod,
        path: str,
        destination: Optional[str],
        overwrite: bool,
    ) -> DAVRequest:
        if destination is None:
            raise error.MissingParameter(
                url=self._resolve_url(path),
                reason="%s requires a destination" % method.value,
            )
        headers = {
            "Destination": self._resolve_url(destination),
            "Overwrite": "T" if overwrite else "F",
        }
        return self._new_request(path, method, headers)

    def listing_request(self, path: str, depth: int = 1) -> DAVRequest:
        """
        Build a PROPFIND request for all properties.  Any depth above
        1 is sent as ``infinity``.
        """
        if depth is None or depth < 0:
            raise error.MissingParameter(
                url=self._resolve_url(path),
                reason="listing requires a non-negative depth, got %r" % (depth,),
            )
        headers = {
            "Depth": "infinity" if depth > 1 else str(int(depth)),
            "Content-Type": "application/xml",
        }
        return self._new_request(path, DAVMethod.PROPFIND, headers, build_propfind_body())

    # =========================================================================
    # Response parsers
    # =========================================================================

    def parse_get(self, body: bytes, status: Optional[int] = None) -> bytes:
        """The body of a GET is the result, unchanged"""
        return body

    def parse_listing(self, body: bytes, status: Optional[int] = None) -> Any:
        """
        Raises:
            DecodeError: if the body is not a valid multistatus document
        """
        return parse_listing(body, huge_tree=self.huge_tree)
