"""
Sans-I/O WebDAV protocol implementation.

This module provides protocol-level operations without any I/O.
It builds requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (DAVRequest, DirectoryEntry, outcomes)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies
- operations: WebDAVProtocol class combining builders and parsers
- verbs: The encoder/decoder pair of every supported verb

Example usage:

    from davkit.protocol import WebDAVProtocol

    protocol = WebDAVProtocol(base_url="https://dav.example.com/")

    # Build a request (no I/O)
    request = protocol.move_request("/a.txt", destination="/b.txt")

    # Execute via your preferred I/O (sync, async, or mock)
    ...
"""

from .types import (
    DEFAULT_TIMEOUT,
    # Enums
    DAVMethod,
    # Request
    DAVRequest,
    # Result types
    DirectoryEntry,
    Failure,
    Outcome,
    Success,
)
from .xml_builders import build_propfind_body
from .xml_parsers import parse_listing
from .operations import WebDAVProtocol
from .verbs import VERBS, Verb, verb_for

__all__ = [
    "DEFAULT_TIMEOUT",
    # Enums
    "DAVMethod",
    # Request
    "DAVRequest",
    # Result types
    "DirectoryEntry",
    "Failure",
    "Outcome",
    "Success",
    # XML Builders
    "build_propfind_body",
    # XML Parsers
    "parse_listing",
    # Protocol
    "WebDAVProtocol",
    "Verb",
    "VERBS",
    "verb_for",
]
