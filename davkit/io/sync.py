"""
Thread-backed transport using the blocking requests library.
"""

import asyncio
import concurrent.futures
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Optional

import requests
from requests.auth import HTTPBasicAuth, HTTPDigestAuth

from davkit.lib import auth
from davkit.protocol.types import DAVRequest

from .base import (
    ChallengeTracker,
    TransportDelegate,
    auth_challenges,
    server_trust_challenge,
    wire_headers,
)

log = logging.getLogger("davkit")


class RequestHandle:
    """Handle of a request running on a worker thread"""

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self.future: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()


class LoopDelegate:
    """
    Runs on the worker thread and forwards every event to the real
    delegate on its event loop.  Nothing is forwarded once the handle
    is cancelled.
    """

    def __init__(
        self,
        delegate: TransportDelegate,
        loop: asyncio.AbstractEventLoop,
        handle: RequestHandle,
        timeout: Optional[float] = None,
    ) -> None:
        self.delegate = delegate
        self.loop = loop
        self.handle = handle
        self.timeout = timeout

    def challenge_received(self, challenge: auth.Challenge) -> auth.Answer:
        if self.handle.cancelled:
            return (auth.Disposition.CANCEL_CHALLENGE, None)
        future = asyncio.run_coroutine_threadsafe(self._ask(challenge), self.loop)
        return future.result(self.timeout)

    async def _ask(self, challenge: auth.Challenge) -> auth.Answer:
        return self.delegate.challenge_received(challenge)

    def headers_received(self, status: int, headers: Optional[Mapping[str, str]] = None) -> None:
        self._post(self.delegate.headers_received, status, headers)

    def body_chunk_received(self, chunk: bytes) -> None:
        self._post(self.delegate.body_chunk_received, chunk)

    def transport_completed(self, exc: Optional[BaseException] = None) -> None:
        self._post(self.delegate.transport_completed, exc)

    def _post(self, callback, *args) -> None:
        if self.handle.cancelled:
            return
        self.loop.call_soon_threadsafe(callback, *args)


class RequestsTransport:
    """
    Transport running blocking requests calls in a thread pool.

    Events are delivered on the event loop that issued the request, in
    the order the worker produced them.

    Example:
        transport = RequestsTransport()
        client = WebDAVClient("https://dav.example.com/", transport=transport)
        outcome = await client.listing("/docs/").run()
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        chunk_size: int = 64 * 1024,
        verify: bool = True,
        max_workers: Optional[int] = None,
    ):
        """
        Args:
            session: Existing requests Session to use (creates new if None)
            chunk_size: Largest body chunk handed to the delegate
            verify: Verify SSL certificates
            max_workers: Size of the worker pool
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.chunk_size = chunk_size
        self.verify = verify
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="davkit"
        )

    def issue(self, request: DAVRequest, delegate: TransportDelegate) -> RequestHandle:
        loop = asyncio.get_running_loop()
        handle = RequestHandle()
        forwarder = LoopDelegate(delegate, loop, handle, timeout=request.timeout)
        handle.future = loop.run_in_executor(
            self.executor, self._run, request, forwarder, handle
        )
        return handle

    def cancel(self, handle: RequestHandle) -> None:
        handle.cancel()

    def _run(self, request: DAVRequest, delegate: LoopDelegate, handle: RequestHandle) -> None:
        try:
            self._exchange(request, delegate, handle)
        except (requests.RequestException, concurrent.futures.TimeoutError) as err:
            ## the latter when the loop did not answer a challenge in time
            delegate.transport_completed(err)
        except Exception as err:
            log.debug("%s %s failed", request.method.value, request.url, exc_info=True)
            delegate.transport_completed(err)
        else:
            delegate.transport_completed(None)

    def _exchange(
        self, request: DAVRequest, delegate: LoopDelegate, handle: RequestHandle
    ) -> None:
        tracker = ChallengeTracker()
        options: dict[str, Any] = {"verify": self.verify}

        while not handle.cancelled:
            try:
                response = self.session.request(
                    request.method.value,
                    request.url,
                    headers=wire_headers(request),
                    data=request.body,
                    stream=True,
                    timeout=request.timeout,
                    **options,
                )
            except requests.exceptions.SSLError as err:
                if options["verify"] is False:
                    raise
                if tracker.offer(delegate, [server_trust_challenge(request, err)]) is None:
                    raise
                options["verify"] = False
                continue

            with response:
                if response.status_code == 401:
                    answer = tracker.offer(
                        delegate,
                        auth_challenges(request, response.headers.get("WWW-Authenticate")),
                    )
                    if answer is not None:
                        options.update(self._credential_options(*answer))
                        continue
                delegate.headers_received(response.status_code, response.headers)
                for chunk in response.iter_content(self.chunk_size):
                    if handle.cancelled:
                        log.debug("%s %s cancelled", request.method.value, request.url)
                        return
                    if chunk:
                        delegate.body_chunk_received(chunk)
            return

    def _credential_options(self, challenge: auth.Challenge, credential) -> dict:
        if challenge.method == auth.AuthMethod.SERVER_TRUST.value:
            return {"verify": False}
        if challenge.method == auth.AuthMethod.DIGEST.value:
            return {"auth": HTTPDigestAuth(credential.username, credential.password)}
        return {"auth": HTTPBasicAuth(credential.username, credential.password)}

    async def close(self) -> None:
        """Close the session if we created it, and the worker pool"""
        self.executor.shutdown(wait=False)
        if self._owns_session and self.session:
            self.session.close()

    async def __aenter__(self) -> "RequestsTransport":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
