"""
Pure functions for parsing WebDAV XML responses.

All functions in this module are pure - they take XML bytes in and return
structured data out, with no side effects or I/O.
"""

import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Optional
from urllib.parse import unquote

from lxml import etree
from lxml.etree import _Element

from davkit.elements import dav
from davkit.lib import error
from davkit.lib.url import URL

from .types import DirectoryEntry

log = logging.getLogger(__name__)


def parse_listing(body: bytes, huge_tree: bool = False) -> list[DirectoryEntry]:
    """
    Parse a 207 Multi-Status answer to a PROPFIND into directory entries.

    Entries come back in document order.  Properties reported with a
    non-200 propstat status are left out.

    Args:
        body: Raw XML response bytes
        huge_tree: Allow parsing very large XML documents

    Raises:
        DecodeError: If body is empty, not XML, or not a multistatus
    """
    if not body:
        raise error.DecodeError(reason="empty PROPFIND response body")

    parser = etree.XMLParser(remove_blank_text=True, huge_tree=huge_tree)
    try:
        tree = etree.fromstring(body, parser)
    except etree.XMLSyntaxError as err:
        log.info("could not parse the PROPFIND response", exc_info=True)
        raise error.DecodeError(reason=f"invalid XML: {err}") from err

    multistatus = _strip_to_multistatus(tree)
    if multistatus is None:
        raise error.DecodeError(reason=f"expected a multistatus, got {tree.tag}")

    entries = []
    for elem in multistatus:
        if elem.tag != dav.Response.tag:
            if isinstance(elem.tag, str):
                error.weirdness("unexpected element in multistatus", elem.tag)
            continue
        href, propstats = _parse_response_element(elem)
        if href is None:
            raise error.DecodeError(reason="response element without href")
        entries.append(_to_entry(href, _extract_properties(propstats)))
    return entries


# Helper functions


def _strip_to_multistatus(tree: _Element) -> Optional[_Element]:
    """
    The general format is:
        <xml><multistatus>
            <response>...</response>
            <response>...</response>
        </multistatus></xml>

    But sometimes the xml element is present.
    """
    if tree.tag == "xml" and len(tree) > 0 and tree[0].tag == dav.MultiStatus.tag:
        return tree[0]
    if tree.tag == dav.MultiStatus.tag:
        return tree
    return None


def _parse_response_element(response: _Element) -> tuple[Optional[str], list[_Element]]:
    href: Optional[str] = None
    propstats: list[_Element] = []

    for elem in response:
        if elem.tag == dav.Href.tag:
            text = (elem.text or "").strip()
            ## Fix for double-encoded URLs (e.g., Confluence)
            if "%2540" in text:
                text = text.replace("%2540", "%40")
            href = unquote(text)
            ## Convert absolute URLs to paths
            if ":" in href:
                href = unquote(URL(text).path)
        elif elem.tag == dav.PropStat.tag:
            propstats.append(elem)

    return (href, propstats)


def _extract_properties(propstats: list[_Element]) -> dict[str, Any]:
    properties: dict[str, Any] = {}

    for propstat in propstats:
        status_elem = propstat.find(dav.Status.tag)
        if status_elem is not None and _status_to_code(status_elem.text) != 200:
            continue

        prop = propstat.find(dav.Prop.tag)
        if prop is None:
            continue

        for child in prop:
            if child.tag == dav.ResourceType.tag:
                properties[child.tag] = [c.tag for c in child]
            elif len(child) == 0:
                properties[child.tag] = child.text
            else:
                properties[child.tag] = child

    return properties


def _to_entry(href: str, properties: dict[str, Any]) -> DirectoryEntry:
    def text(element: Any) -> Optional[str]:
        ## elements with children are kept as-is in properties only
        value = properties.get(element.tag)
        return value if isinstance(value, str) else None

    return DirectoryEntry(
        href=href,
        is_collection=dav.Collection.tag in (properties.get(dav.ResourceType.tag) or []),
        properties=properties,
        display_name=text(dav.DisplayName),
        content_type=text(dav.GetContentType),
        content_length=_parse_length(text(dav.GetContentLength)),
        etag=text(dav.GetEtag),
        created=_parse_date(text(dav.CreationDate), iso=True),
        modified=_parse_date(text(dav.GetLastModified)),
    )


def _parse_length(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    try:
        length = int(text.strip())
    except ValueError:
        log.debug("unparseable content length %r", text)
        return None
    return length if length >= 0 else None


def _parse_date(text: Optional[str], iso: bool = False) -> Optional[datetime]:
    """
    creationdate is ISO 8601 (RFC 4918 section 15.1), getlastmodified
    is an HTTP date.  Servers get both wrong, so try both.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    text = text.strip()
    parsers = (_from_iso, parsedate_to_datetime)
    if not iso:
        parsers = parsers[::-1]
    for parse in parsers:
        try:
            return parse(text)
        except (TypeError, ValueError):
            continue
    log.debug("unparseable date %r", text)
    return None


def _from_iso(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _status_to_code(status: Optional[str]) -> int:
    """
    Extract status code from status string like "HTTP/1.1 200 OK".
    Defaults to 200 if parsing fails.
    """
    if not status:
        return 200

    parts = status.split()
    if len(parts) >= 2:
        try:
            return int(parts[1])
        except ValueError:
            pass

    return 200
