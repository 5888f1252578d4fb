"""
Authentication utilities for WebDAV operations.

This module contains the challenge model shared by the transports and
the policy used by an executing exchange to answer challenges.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any
from typing import Optional
from typing import Tuple
from typing import Union

from requests.utils import parse_dict_header


class AuthMethod(str, Enum):
    """Authentication mechanisms a challenge can be scoped to."""

    DEFAULT = "default"
    BASIC = "basic"
    DIGEST = "digest"
    SERVER_TRUST = "server-trust"


SUPPORTED_METHODS = frozenset(m.value for m in AuthMethod)


class Disposition(Enum):
    USE_CREDENTIAL = "use-credential"
    PERFORM_DEFAULT_HANDLING = "perform-default-handling"
    CANCEL_CHALLENGE = "cancel-challenge"
    REJECT_PROTECTION_SPACE = "reject-protection-space"


@dataclass(frozen=True)
class Credential:
    """Username/password pair.  Never persisted by the library."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class ServerTrust:
    """
    Credential answering a server-trust challenge: accept the
    certificate the server offered for ``host``.
    """

    host: str


@dataclass(frozen=True)
class ProtectionSpace:
    host: str
    port: Optional[int]
    realm: Optional[str]
    method: str


@dataclass(frozen=True)
class Challenge:
    """
    One authentication challenge.  ``method`` is the lower cased
    scheme name; anything outside :data:`SUPPORTED_METHODS` is kept as
    given so the policy can reject it.
    """

    method: str
    host: str
    port: Optional[int] = None
    realm: Optional[str] = None
    params: dict = field(default_factory=dict, compare=False)
    previous_failure_count: int = 0
    trust: Any = field(default=None, compare=False)

    @property
    def protection_space(self) -> ProtectionSpace:
        return ProtectionSpace(self.host, self.port, self.realm, self.method)


Answer = Tuple[Disposition, Optional[Union[Credential, ServerTrust]]]

_AUTH_PARAM = re.compile(r"^[\w!#$%&'*+.^`|~-]+\s*=")
_CHALLENGE_START = re.compile(r"^([\w!#$%&'*+.^`|~-]+)(?:\s+(.*))?$", re.S)
_LIST_ITEM = re.compile(r'(?:[^,"]|"(?:[^"\\]|\\.)*")+')


def extract_auth_types(header: str) -> set[str]:
    """
    Extract authentication types from WWW-Authenticate header.

    Example:
        >>> sorted(extract_auth_types('Basic realm="test", Digest realm="test", qop="auth"'))
        ['basic', 'digest']
    """
    return {scheme for scheme, _ in parse_www_authenticate(header)}


def parse_www_authenticate(header: str) -> list[tuple[str, dict]]:
    """
    Split a WWW-Authenticate header into (scheme, params) pairs, in
    the order the server offered them.  Scheme names are lower cased;
    token68 data (``Negotiate abc==``) is not interpreted.

    Reference:
        https://www.rfc-editor.org/rfc/rfc9110#section-11.6.1
    """
    challenges: list[tuple[str, list[str]]] = []
    for item in _LIST_ITEM.findall(header or ""):
        item = item.strip()
        if not item:
            continue
        if _AUTH_PARAM.match(item) and challenges:
            challenges[-1][1].append(item)
            continue
        match = _CHALLENGE_START.match(item)
        if not match:
            continue
        scheme, rest = match.groups()
        params = [rest] if rest and _AUTH_PARAM.match(rest) else []
        challenges.append((scheme.lower(), params))
    return [
        (scheme, parse_dict_header(", ".join(params)) if params else {})
        for scheme, params in challenges
    ]


def challenges_from_header(
    header: Optional[str], host: str, port: Optional[int] = None
) -> list[Challenge]:
    """
    Challenges offered by a 401 response.  A 401 carrying no
    WWW-Authenticate header is a challenge for the default mechanism.
    """
    if not header:
        return [Challenge(AuthMethod.DEFAULT.value, host, port)]
    return [
        Challenge(scheme, host, port, params.get("realm"), params)
        for scheme, params in parse_www_authenticate(header)
    ]


def respond_to_challenge(
    challenge: Challenge,
    credential: Optional[Credential],
    allow_untrusted_certificates: bool = False,
) -> Answer:
    """
    Decide how an executing exchange answers ``challenge``.

    * Unsupported mechanisms are rejected, so the transport may try
      the next protection space or give up on its own terms.
    * Server trust is granted only when untrusted certificates are
      allowed, else the protection space is rejected.
    * A username/password challenge is answered once with the
      credential.  Once it has failed for that protection space, the
      challenge is cancelled.
    """
    if challenge.method not in SUPPORTED_METHODS:
        return (Disposition.REJECT_PROTECTION_SPACE, None)

    if challenge.method == AuthMethod.SERVER_TRUST.value:
        if allow_untrusted_certificates:
            return (Disposition.USE_CREDENTIAL, ServerTrust(challenge.host))
        return (Disposition.REJECT_PROTECTION_SPACE, None)

    if credential is None:
        return (Disposition.PERFORM_DEFAULT_HANDLING, None)
    if challenge.previous_failure_count == 0:
        return (Disposition.USE_CREDENTIAL, credential)
    ## Wrong login/password
    return (Disposition.CANCEL_CHALLENGE, None)
