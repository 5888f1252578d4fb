#!/usr/bin/env python
import logging
import os
from enum import Enum
from typing import ClassVar
from typing import Optional

from davkit import __version__

## Environmental variables prepended with "PYTHON_DAVKIT" are used for debug purposes,
## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_DAVKIT_DEBUGMODE")
if not debugmode:
    if "dev" in __version__ or __version__ == "(unknown)":
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("davkit")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)


def weirdness(*reasons) -> None:
    reason = " : ".join([str(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


def assert_(condition: object) -> None:
    try:
        assert condition
    except AssertionError:
        if debugmode == "PRODUCTION":
            log.error(
                "Deviation from expectations found.  %s" % ERR_FRAGMENT, exc_info=True
            )
        elif debugmode == "DEBUG_PDB":
            log.error("Deviation from expectations found.  Dropping into debugger")
            import pdb

            pdb.set_trace()
        else:
            raise


ERR_FRAGMENT: str = "Please consider raising an issue on the davkit issue tracker, include this error and the traceback (if any) and tell what server you are using"


class ErrorCode(Enum):
    TRANSPORT = "transport"
    HTTP_STATUS = "http-status"
    MISSING_PARAMETER = "missing-parameter"
    DECODE = "decode"
    CANCELLED = "cancelled"
    INVALID_STATE = "invalid-state"


class DAVError(Exception):
    code: ClassVar[ErrorCode]
    url: Optional[str] = None
    reason: str = "no reason"
    status: Optional[int] = None

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class TransportError(DAVError):
    """
    Network, DNS, TLS or timeout failure reported by the transport.
    The original exception is chained as ``__cause__``.
    """

    code = ErrorCode.TRANSPORT


class HTTPStatusError(DAVError):
    """
    The server answered with a status code >= 400.  The numeric code
    is available as the ``status`` attribute.
    """

    code = ErrorCode.HTTP_STATUS

    def __init__(
        self,
        status: int,
        url: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(url=url, reason=reason or "HTTP status %i" % status)
        self.status = status


class AuthorizationError(HTTPStatusError):
    """
    The server answered 401 or 403, after the credential (if any)
    was presented.
    """

    pass


class NotFoundError(HTTPStatusError):
    pass


class MissingParameter(DAVError):
    """
    A required verb-specific input was absent when the request was
    built.  No request was sent.
    """

    code = ErrorCode.MISSING_PARAMETER


class DecodeError(DAVError):
    code = ErrorCode.DECODE


class Cancelled(DAVError):
    """
    The exchange was cancelled before it completed.  ``cancel_code``
    holds the code passed to ``cancel()`` (-1 when none was given).
    """

    code = ErrorCode.CANCELLED

    def __init__(
        self, cancel_code: int = -1, url: Optional[str] = None, reason: Optional[str] = None
    ) -> None:
        super().__init__(url=url, reason=reason or "cancelled with code %i" % cancel_code)
        self.cancel_code = cancel_code


class InvalidState(DAVError):
    code = ErrorCode.INVALID_STATE


def for_status(
    status: int, url: Optional[str] = None, reason: Optional[str] = None
) -> HTTPStatusError:
    """Pick the most specific HTTPStatusError subclass for a status code"""
    if status in (401, 403):
        cls = AuthorizationError
    elif status == 404:
        cls = NotFoundError
    else:
        cls = HTTPStatusError
    return cls(status, url=url, reason=reason)
