#!/usr/bin/env python
"""
The request lifecycle engine.

An :class:`ExchangeLifecycle` drives one request/response round-trip
through ``IDLE -> EXECUTING -> FINISHED | CANCELLED``.  The transport
calls back into it (challenge, headers, body chunks, completion) and
the lifecycle reports exactly one terminal :data:`Outcome` through its
``on_outcome`` callback, whatever the interleaving of transport events
and ``cancel()`` calls.

All methods are expected to be called from one execution context (the
event loop the owning operation runs on); transports running
elsewhere marshal their events onto it.
"""
import logging
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any
from typing import Callable
from typing import Mapping
from typing import Optional

from davkit.lib import auth
from davkit.lib import error
from davkit.protocol.types import DAVRequest
from davkit.protocol.types import Failure
from davkit.protocol.types import Outcome
from davkit.protocol.types import Success

log = logging.getLogger("davkit")


class LifecycleState(Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.FINISHED, LifecycleState.CANCELLED)


@dataclass
class Exchange:
    """
    One network round-trip.  Created when the lifecycle starts, frozen
    in practice once ``outcome`` is set.
    """

    request: DAVRequest
    body: bytearray = field(default_factory=bytearray)
    status: Optional[int] = None
    response_headers: Mapping[str, str] = field(default_factory=dict)
    outcome: Optional[Outcome] = None

    @property
    def url(self) -> str:
        return self.request.url

    @property
    def method(self) -> str:
        return self.request.method.value


class ExchangeLifecycle:
    """
    State machine for one exchange.  It is also the delegate handed to
    the transport.
    """

    def __init__(
        self,
        transport,
        decode: Optional[Callable[[bytes, Optional[int]], Any]] = None,
        credential: Optional[auth.Credential] = None,
        allow_untrusted_certificates: bool = False,
        on_begin: Optional[Callable[[], None]] = None,
        on_outcome: Optional[Callable[[Outcome], None]] = None,
    ) -> None:
        self.transport = transport
        self.decode = decode
        self.credential = credential
        self.allow_untrusted_certificates = allow_untrusted_certificates
        self.on_begin = on_begin
        self.on_outcome = on_outcome
        self.exchange: Optional[Exchange] = None
        self._state = LifecycleState.IDLE
        self._handle = None
        self._early_outcome: Optional[Outcome] = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def outcome(self) -> Optional[Outcome]:
        return self.exchange.outcome if self.exchange else self._early_outcome

    def start(self, build_request: Callable[[], DAVRequest]) -> None:
        """
        Build the request and hand it to the transport.

        A request that cannot be built (missing parameter) ends the
        lifecycle right away with a Failure; nothing is sent.

        Raises:
            InvalidState: if the lifecycle was already started or cancelled
        """
        if self._state is not LifecycleState.IDLE:
            raise error.InvalidState(reason="cannot start from state %s" % self._state.value)

        try:
            request = build_request()
        except error.MissingParameter as err:
            log.debug("not sending request: %s", err)
            self._state = LifecycleState.FINISHED
            self._deliver(Failure(err))
            return

        self.exchange = Exchange(request)
        self._state = LifecycleState.EXECUTING
        if self.on_begin:
            self.on_begin()
        if self._state is not LifecycleState.EXECUTING:
            ## cancelled from the begin hook
            return

        log.debug("sending request - method=%s, url=%s", request.method.value, request.url)
        try:
            self._handle = self.transport.issue(request, self)
        except Exception as err:
            log.debug("transport refused the request", exc_info=True)
            if self._state is LifecycleState.EXECUTING:
                self._complete_with(self._transport_error(err))
            return
        if self._state is LifecycleState.CANCELLED:
            ## cancelled while the transport was issuing the request
            self.transport.cancel(self._handle)

    def cancel(self, code: int = -1) -> None:
        """
        Cancel the exchange.  Safe to call any number of times and in
        any state; only the first call on a non-terminal lifecycle has
        an effect.
        """
        if self._state is LifecycleState.IDLE:
            self._state = LifecycleState.CANCELLED
            self._deliver(Failure(error.Cancelled(code)))
        elif self._state is LifecycleState.EXECUTING:
            self._abort(error.Cancelled(code, url=self.exchange.url))

    # =========================================================================
    # Transport delegate
    # =========================================================================

    def challenge_received(self, challenge: auth.Challenge) -> auth.Answer:
        if self._state is not LifecycleState.EXECUTING:
            return (auth.Disposition.CANCEL_CHALLENGE, None)
        disposition, credential = auth.respond_to_challenge(
            challenge, self.credential, self.allow_untrusted_certificates
        )
        log.debug(
            "%s challenge for %s (realm %s, %i previous failures): %s",
            challenge.method,
            challenge.host,
            challenge.realm,
            challenge.previous_failure_count,
            disposition.value,
        )
        return (disposition, credential)

    def headers_received(self, status: int, headers: Optional[Mapping[str, str]] = None) -> None:
        if not self._accepts("headers"):
            return
        self.exchange.status = status
        self.exchange.response_headers = headers or {}
        log.debug("server responded with %i", status)
        if status >= 400:
            ## the body of an error response is never buffered
            self._abort(error.for_status(status, url=self.exchange.url))

    def body_chunk_received(self, chunk: bytes) -> None:
        if not self._accepts("body chunk"):
            return
        self.exchange.body.extend(chunk)

    def transport_completed(self, exc: Optional[BaseException] = None) -> None:
        if not self._accepts("completion"):
            return
        if exc is not None:
            self._complete_with(self._transport_error(exc))
            return

        body = bytes(self.exchange.body)
        if self.decode is None:
            outcome: Outcome = Success(None)
        else:
            try:
                outcome = Success(self.decode(body, self.exchange.status))
            except error.DecodeError as err:
                err.url = err.url or self.exchange.url
                outcome = Failure(err)
            except Exception as exc:
                log.info("decoding the response of %s failed", self.exchange.url, exc_info=True)
                err = error.DecodeError(url=self.exchange.url, reason=str(exc) or type(exc).__name__)
                err.__cause__ = exc
                outcome = Failure(err)
        self._complete_with(outcome)

    # =========================================================================
    # Internals
    # =========================================================================

    def _accepts(self, event: str) -> bool:
        if self._state is LifecycleState.EXECUTING:
            return True
        log.debug("ignoring %s in state %s", event, self._state.value)
        return False

    def _transport_error(self, exc: BaseException) -> Failure:
        err = error.TransportError(url=self.exchange.url, reason=str(exc) or type(exc).__name__)
        err.__cause__ = exc
        return Failure(err)

    def _abort(self, err: error.DAVError) -> None:
        ## state flips before the transport is told, so events the
        ## cancellation triggers synchronously are ignored
        self._state = LifecycleState.CANCELLED
        if self._handle is not None:
            self.transport.cancel(self._handle)
        self._deliver(Failure(err))

    def _complete_with(self, outcome: Outcome) -> None:
        self._state = LifecycleState.FINISHED
        self._deliver(outcome)

    def _deliver(self, outcome: Outcome) -> None:
        error.assert_(self.outcome is None)
        if self.outcome is not None:
            return
        if self.exchange is not None:
            self.exchange.outcome = outcome
        else:
            self._early_outcome = outcome
        log.debug("exchange %s: %s", self._state.value, outcome)
        if self.on_outcome:
            self.on_outcome(outcome)
