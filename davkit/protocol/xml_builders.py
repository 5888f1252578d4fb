"""
Pure functions for building WebDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from davkit.elements import dav


def build_propfind_body() -> bytes:
    """
    Build the PROPFIND request body asking for all properties:

        <D:propfind xmlns:D="DAV:"><D:allprop/></D:propfind>

    Returns:
        UTF-8 encoded XML bytes
    """
    return (dav.Propfind() + dav.Allprop()).tostring()
