#!/usr/bin/env python
"""
The ``Operation`` class is what calling code works with: one WebDAV
verb against one path, started once, cancellable at any time, and
reporting exactly one terminal outcome.

    op = Operation("get", "https://dav.example.com/", "/docs/readme.txt",
                   credential=Credential("user", "secret"),
                   transport=AiohttpTransport())
    outcome = await op.run()
    if outcome.ok:
        print(outcome.result.decode())

Observers that want callbacks instead subclass
:class:`OperationObserver` and register themselves.  Observers are
held weakly; an observer that has been garbage collected is simply not
notified.
"""
import abc
import asyncio
import logging
import weakref
from typing import Any
from typing import Optional
from typing import Union

from davkit.exchange import ExchangeLifecycle
from davkit.exchange import LifecycleState
from davkit.lib import error
from davkit.lib.auth import Credential
from davkit.lib.url import URL
from davkit.protocol.operations import WebDAVProtocol
from davkit.protocol.types import DAVRequest
from davkit.protocol.types import DEFAULT_TIMEOUT
from davkit.protocol.types import Outcome
from davkit.protocol.verbs import Verb
from davkit.protocol.verbs import verb_for

log = logging.getLogger("davkit")


class OperationObserver(abc.ABC):
    @abc.abstractmethod
    def operation_finished(self, operation: "Operation", outcome: Outcome) -> None:
        """Called once, with the terminal outcome of ``operation``"""

    def operation_began(self, operation: "Operation") -> None:
        """Called right before the request goes to the transport"""


class Operation:
    """
    One WebDAV verb against one path.

    Args:
      verb: a :class:`Verb` or the name of one (get, put, delete, mkcol, copy, move, listing)
      base_url: the fixed URL all paths are appended to
      path: the resource the verb works on
      credential: answers username/password challenges, once
      transport: see :mod:`davkit.io`
      observer: an :class:`OperationObserver`, same as calling ``register_observer``
      allow_untrusted_certificates: answer server-trust challenges by trusting the certificate
      timeout: seconds the transport may spend on the exchange
      loop: the event loop all state changes happen on.  Taken from
        the running loop at ``start()`` if not given
      params: verb specific parameters - ``data`` and ``content_type``
        for put, ``destination`` and ``overwrite`` for copy and move,
        ``depth`` for listing
    """

    def __init__(
        self,
        verb: Union[Verb, str],
        base_url: Union[str, URL],
        path: str,
        credential: Optional[Credential] = None,
        transport=None,
        observer: Optional[OperationObserver] = None,
        allow_untrusted_certificates: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        **params: Any,
    ) -> None:
        if isinstance(verb, str):
            verb = verb_for(verb)
        if not callable(getattr(verb, "encode", None)):
            raise TypeError("%r can not encode a request" % (verb,))
        self.verb = verb
        self.path = path
        self.params = params
        self.protocol = WebDAVProtocol(base_url, timeout=timeout)
        self.loop = loop
        self._observer_ref: Optional[weakref.ref] = None
        self._waiters: list[asyncio.Future] = []
        decode = None
        if verb.decode is not None:

            def decode(body, status):
                return verb.decode(self.protocol, body, status)

        self.lifecycle = ExchangeLifecycle(
            transport,
            decode=decode,
            credential=credential,
            allow_untrusted_certificates=allow_untrusted_certificates,
            on_begin=self._began,
            on_outcome=self._finished,
        )
        if observer is not None:
            self.register_observer(observer)

    def __repr__(self) -> str:
        return "%s(%s %s, %s)" % (
            self.__class__.__name__,
            self.verb.name,
            self.path,
            self.state.value,
        )

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    @property
    def is_executing(self) -> bool:
        return self.state is LifecycleState.EXECUTING

    @property
    def is_finished(self) -> bool:
        return self.state is LifecycleState.FINISHED

    @property
    def is_cancelled(self) -> bool:
        return self.state is LifecycleState.CANCELLED

    @property
    def outcome(self) -> Optional[Outcome]:
        return self.lifecycle.outcome

    @property
    def exchange(self):
        return self.lifecycle.exchange

    def request(self) -> DAVRequest:
        """
        The wire request this operation sends.

        Raises:
            MissingParameter: if a verb specific parameter is missing
        """
        return self.verb.encode(self.protocol, self.path, **self.params)

    def register_observer(self, observer: OperationObserver) -> None:
        """
        Raises:
            InvalidState: if an observer was registered already
        """
        if not isinstance(observer, OperationObserver):
            raise TypeError("observers must subclass OperationObserver")
        if self._observer_ref is not None:
            raise error.InvalidState(reason="an observer is registered already")
        self._observer_ref = weakref.ref(observer)

    def start(self) -> None:
        """
        Send the request.  Must be called with the operation's loop
        running; from any other thread the call is handed to that loop.
        The state is checked before handing over, so a second start from
        another thread raises here too.  Two racing first calls from
        other threads are both handed over; the loser is logged there.

        Raises:
            InvalidState: if the operation was started or cancelled before
        """
        if self.state is not LifecycleState.IDLE:
            raise error.InvalidState(reason="cannot start from state %s" % self.state.value)
        if self._redispatch(self._start_on_loop):
            return
        self._start_on_loop()

    def _start_on_loop(self) -> None:
        if self.state is not LifecycleState.IDLE:
            log.debug("%r was started or cancelled in the meantime, not starting", self)
            return
        if self.loop is None:
            self.loop = _running_loop()
        self.lifecycle.start(self.request)

    def cancel(self, code: int = -1) -> None:
        """
        Cancel the operation.  Any number of calls, in any state, are
        fine; only the first one on an unfinished operation counts.
        """
        if self._redispatch(self.cancel, code):
            return
        self.lifecycle.cancel(code)

    async def wait(self) -> Outcome:
        """Wait for the terminal outcome"""
        if self.outcome is not None:
            return self.outcome
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await waiter

    async def run(self) -> Outcome:
        """Start, then wait for the terminal outcome"""
        self.start()
        return await self.wait()

    def _redispatch(self, method, *args) -> bool:
        if self.loop is None or _running_loop() is self.loop:
            return False
        log.debug("handing %s of %r to its event loop", method.__name__, self)
        self.loop.call_soon_threadsafe(method, *args)
        return True

    def _observer(self) -> Optional[OperationObserver]:
        if self._observer_ref is None:
            return None
        return self._observer_ref()

    def _began(self) -> None:
        observer = self._observer()
        if observer is not None:
            observer.operation_began(self)

    def _finished(self, outcome: Outcome) -> None:
        current = _running_loop()
        for waiter in self._waiters:
            loop = waiter.get_loop()
            if loop is current:
                _resolve(waiter, outcome)
            elif not loop.is_closed():
                ## futures may only be touched from their own loop
                loop.call_soon_threadsafe(_resolve, waiter, outcome)
        self._waiters.clear()
        observer = self._observer()
        if observer is None:
            if self._observer_ref is not None:
                log.debug("observer of %r is gone, dropping the outcome", self)
            return
        observer.operation_finished(self, outcome)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _resolve(waiter: asyncio.Future, outcome: Outcome) -> None:
    if not waiter.done():
        waiter.set_result(outcome)
