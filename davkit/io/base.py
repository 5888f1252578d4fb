"""
Abstract transport definition.

This module defines the interface every transport must follow, and the
challenge bookkeeping the transports share.
"""

import dataclasses
import logging
from collections import Counter
from typing import Any, Mapping, Optional, Protocol, Tuple, runtime_checkable

from davkit.lib import auth
from davkit.lib.url import URL
from davkit.protocol.types import DAVRequest

log = logging.getLogger("davkit")

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@runtime_checkable
class TransportDelegate(Protocol):
    """
    Receiver of transport events.  For each issued request a transport
    delivers, in order: zero or more challenges, one headers event,
    zero or more body chunks and exactly one completion.  A transport
    that has been cancelled may stop delivering at any point.
    """

    def challenge_received(self, challenge: auth.Challenge) -> auth.Answer:
        ...

    def headers_received(self, status: int, headers: Optional[Mapping[str, str]] = None) -> None:
        ...

    def body_chunk_received(self, chunk: bytes) -> None:
        ...

    def transport_completed(self, exc: Optional[BaseException] = None) -> None:
        ...


@runtime_checkable
class Transport(Protocol):
    """
    Protocol defining the transport interface.

    ``issue`` must return without blocking; events are delivered later
    on the event loop that was running when ``issue`` was called.
    """

    def issue(self, request: DAVRequest, delegate: TransportDelegate) -> Any:
        """
        Start sending ``request``.

        Returns:
            A handle that can be passed to :meth:`cancel`
        """
        ...

    def cancel(self, handle: Any) -> None:
        """Abort the exchange behind ``handle``.  The abort may complete later."""
        ...

    async def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...


def wire_headers(request: DAVRequest) -> dict:
    """Request headers plus the cache bypass headers, when asked for"""
    headers = dict(request.headers)
    if request.bypass_cache:
        for name, value in NO_CACHE_HEADERS.items():
            if request.header(name) is None:
                headers[name] = value
    return headers


class ChallengeTracker:
    """
    Offers challenges to a delegate and counts, per protection space,
    how many answered challenges have failed.  One tracker lives as
    long as one issued request.
    """

    def __init__(self) -> None:
        self.failures: Counter = Counter()
        self._answered: set = set()

    def offer(
        self, delegate: TransportDelegate, challenges: list
    ) -> Optional[Tuple[auth.Challenge, Any]]:
        """
        Offer ``challenges`` in order until one is answered with a
        credential.  A rejected protection space moves on to the next
        challenge; cancellation or default handling stops.

        Returns:
            The answered challenge and the credential to present, or
            None when nothing was answered
        """
        for challenge in challenges:
            space = challenge.protection_space
            if space in self._answered:
                ## answered before, and here it is again
                self.failures[space] += 1
                self._answered.discard(space)
            challenge = dataclasses.replace(
                challenge, previous_failure_count=self.failures[space]
            )
            disposition, credential = delegate.challenge_received(challenge)
            if disposition is auth.Disposition.USE_CREDENTIAL and credential is not None:
                self._answered.add(space)
                return (challenge, credential)
            if disposition is auth.Disposition.REJECT_PROTECTION_SPACE:
                continue
            log.debug("%s challenge not answered: %s", challenge.method, disposition.value)
            return None
        return None


def auth_challenges(request: DAVRequest, www_authenticate: Optional[str]) -> list:
    url = URL(request.url)
    return auth.challenges_from_header(www_authenticate, url.hostname, url.port)


def server_trust_challenge(request: DAVRequest, err: BaseException) -> auth.Challenge:
    url = URL(request.url)
    return auth.Challenge(
        auth.AuthMethod.SERVER_TRUST.value, url.hostname, url.port, trust=err
    )
