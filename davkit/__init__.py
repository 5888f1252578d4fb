#!/usr/bin/env python
import logging

__version__ = "0.1.0"

from .davclient import WebDAVClient, get_davclient
from .exchange import LifecycleState
from .lib.auth import Credential
from .operation import Operation, OperationObserver
from .protocol.types import DirectoryEntry, Failure, Success

## We should consider if the NullHandler-logic below is needed or not, and
## if there are better alternatives?
# Silence notification of no default logging handler
log = logging.getLogger("davkit")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "Credential",
    "DirectoryEntry",
    "Failure",
    "LifecycleState",
    "Operation",
    "OperationObserver",
    "Success",
    "WebDAVClient",
    "get_davclient",
]
