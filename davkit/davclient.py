#!/usr/bin/env python
import logging
import os
import sys
from types import TracebackType
from typing import Any
from typing import Optional
from typing import Type
from typing import Union

from davkit.io import AiohttpTransport
from davkit.lib import error
from davkit.lib.auth import Credential
from davkit.lib.url import URL
from davkit.operation import Operation
from davkit.operation import OperationObserver
from davkit.protocol.types import DEFAULT_TIMEOUT

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

"""
The ``WebDAVClient`` class holds what all operations against one
server share: the base URL, the credential, the transport and the
certificate policy.  Its methods create operations; nothing is sent
before an operation is started.

The function ``get_davclient`` is the recommended way to get a
WebDAVClient object, it picks up connection parameters from the
environment and from a configuration file.
"""

log = logging.getLogger("davkit")


class WebDAVClient:
    """
    Basic client for WebDAV servers.
    """

    def __init__(
        self,
        url: Union[str, URL],
        username: Optional[str] = None,
        password: Optional[str] = None,
        transport=None,
        timeout: float = DEFAULT_TIMEOUT,
        allow_untrusted_certificates: bool = False,
    ) -> None:
        """
        Sets up a client for the server at ``url``.

        Args:
          url: base URL of the WebDAV share.  Credentials embedded in
            the URL are used when no username is given.
          username, password: credential presented to the first
            basic/digest challenge of each operation
          transport: an object from :mod:`davkit.io`.  An
            :class:`AiohttpTransport` is created (and owned) if None
          timeout: seconds each exchange may take
          allow_untrusted_certificates: trust certificates that fail verification
        """
        url_obj = URL.objectify(url)
        if url_obj.is_auth() and username is None:
            username, password = url_obj.credentials()
        self.url = url_obj.unauth()
        self.credential = None
        if username is not None:
            self.credential = Credential(username, password or "")
        self._owns_transport = transport is None
        self.transport = transport or AiohttpTransport()
        self.timeout = float(timeout)
        self.allow_untrusted_certificates = allow_untrusted_certificates
        log.debug("webdav client for %s", self.url)

    def __repr__(self) -> str:
        return "%s(%s)" % (self.__class__.__name__, self.url)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Closes the transport, if the client created it.
        """
        if self._owns_transport:
            await self.transport.close()

    def operation(
        self,
        verb: str,
        path: str,
        observer: Optional[OperationObserver] = None,
        **params: Any,
    ) -> Operation:
        return Operation(
            verb,
            self.url,
            path,
            credential=self.credential,
            transport=self.transport,
            observer=observer,
            allow_untrusted_certificates=self.allow_untrusted_certificates,
            timeout=self.timeout,
            **params,
        )

    def get(self, path: str, observer: Optional[OperationObserver] = None) -> Operation:
        """Download ``path``; the result is the body as bytes"""
        return self.operation("get", path, observer)

    def put(
        self,
        path: str,
        data: Union[bytes, str, None],
        content_type: Optional[str] = None,
        observer: Optional[OperationObserver] = None,
    ) -> Operation:
        """Upload ``data`` to ``path``"""
        return self.operation("put", path, observer, data=data, content_type=content_type)

    def delete(self, path: str, observer: Optional[OperationObserver] = None) -> Operation:
        return self.operation("delete", path, observer)

    def mkcol(self, path: str, observer: Optional[OperationObserver] = None) -> Operation:
        """Create the collection ``path``"""
        return self.operation("mkcol", path, observer)

    def copy(
        self,
        path: str,
        destination: str,
        overwrite: bool = False,
        observer: Optional[OperationObserver] = None,
    ) -> Operation:
        return self.operation(
            "copy", path, observer, destination=destination, overwrite=overwrite
        )

    def move(
        self,
        path: str,
        destination: str,
        overwrite: bool = False,
        observer: Optional[OperationObserver] = None,
    ) -> Operation:
        return self.operation(
            "move", path, observer, destination=destination, overwrite=overwrite
        )

    def listing(
        self, path: str, depth: int = 1, observer: Optional[OperationObserver] = None
    ) -> Operation:
        """
        List ``path``.  The result is a list of
        :class:`davkit.protocol.DirectoryEntry`, the first one normally
        being ``path`` itself.
        """
        return self.operation("listing", path, observer, depth=depth)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def get_davclient(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data: Any,
) -> WebDAVClient:
    """
    This function will yield a WebDAVClient object.  It will not try
    to connect.  It will read configuration from various sources,
    dependent on the parameters given, in this order:

    * Data from the parameters given
    * Environment variables prepended with `WEBDAV_`, like `WEBDAV_URL`,
      `WEBDAV_USERNAME`, `WEBDAV_PASSWORD`, `WEBDAV_TIMEOUT`,
      `WEBDAV_ALLOW_UNTRUSTED_CERTIFICATES`
    * Environment variables `WEBDAV_CONFIG_FILE` and
      `WEBDAV_CONFIG_SECTION` select the configuration file and section
    * Configuration file, keys prepended with `webdav_`
    """
    if config_data:
        return _client_from(config_data)

    if environment:
        conf = {}
        for conf_key in (
            x
            for x in os.environ
            if x.startswith("WEBDAV_") and not x.startswith("WEBDAV_CONFIG")
        ):
            conf[conf_key[7:].lower()] = os.environ[conf_key]
        if conf:
            return _client_from(conf)
        if not config_file:
            config_file = os.environ.get("WEBDAV_CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get("WEBDAV_CONFIG_SECTION")

    if check_config_file:
        from . import config

        cfg = config.read_config(config_file)
        if cfg:
            section = config.config_section(cfg, config_section or "default")
            conn_params = {}
            for k in section:
                if k.startswith("webdav_") and section[k] is not None:
                    key = k[7:]
                    if key == "pass":
                        key = "password"
                    if key == "user":
                        key = "username"
                    conn_params[key] = section[k]
            if conn_params:
                return _client_from(conn_params)

    raise error.MissingParameter(
        reason="no WebDAV URL given, neither as parameter, environment nor config file"
    )


def _client_from(params: dict) -> WebDAVClient:
    params = dict(params)
    if not params.get("url"):
        raise error.MissingParameter(reason="no WebDAV URL given")
    if "timeout" in params:
        params["timeout"] = float(params["timeout"])
    if "allow_untrusted_certificates" in params:
        params["allow_untrusted_certificates"] = _truthy(params["allow_untrusted_certificates"])
    return WebDAVClient(**params)
