"""
Asynchronous transport using aiohttp library.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

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


class AiohttpTransport:
    """
    Asynchronous transport using aiohttp library.

    Each issued request runs as a task on the running event loop; the
    task is the handle, cancelling the handle cancels the task.

    Example:
        async with AiohttpTransport() as transport:
            client = WebDAVClient("https://dav.example.com/", transport=transport)
            outcome = await client.get("/docs/readme.txt").run()
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        chunk_size: int = 64 * 1024,
        verify_ssl: bool = True,
    ):
        """
        Args:
            session: Existing aiohttp ClientSession to use (creates new if None)
            chunk_size: Largest body chunk handed to the delegate
            verify_ssl: Verify SSL certificates
        """
        self._session = session
        self._owns_session = session is None
        self.chunk_size = chunk_size
        self.verify_ssl = verify_ssl

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def issue(self, request: DAVRequest, delegate: TransportDelegate) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(self._run(request, delegate))

    def cancel(self, handle: asyncio.Task) -> None:
        handle.cancel()

    async def _run(self, request: DAVRequest, delegate: TransportDelegate) -> None:
        try:
            await self._exchange(request, delegate)
        except asyncio.CancelledError:
            log.debug("%s %s cancelled", request.method.value, request.url)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            delegate.transport_completed(err)
        except Exception as err:
            log.debug("%s %s failed", request.method.value, request.url, exc_info=True)
            delegate.transport_completed(err)
        else:
            delegate.transport_completed(None)

    async def _exchange(self, request: DAVRequest, delegate: TransportDelegate) -> None:
        session = await self._get_session()
        tracker = ChallengeTracker()
        options: dict[str, Any] = {"ssl": bool(self.verify_ssl)}

        while True:
            try:
                async with session.request(
                    request.method.value,
                    request.url,
                    headers=wire_headers(request),
                    data=request.body,
                    timeout=aiohttp.ClientTimeout(total=request.timeout),
                    **options,
                ) as response:
                    if response.status == 401:
                        answer = tracker.offer(
                            delegate,
                            auth_challenges(request, response.headers.get("WWW-Authenticate")),
                        )
                        if answer is not None:
                            options.update(self._credential_options(*answer))
                            continue
                    delegate.headers_received(response.status, response.headers)
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        delegate.body_chunk_received(chunk)
                    return
            except aiohttp.ClientConnectorCertificateError as err:
                if options["ssl"] is False:
                    raise
                if tracker.offer(delegate, [server_trust_challenge(request, err)]) is None:
                    raise
                options["ssl"] = False

    def _credential_options(self, challenge: auth.Challenge, credential) -> dict:
        if challenge.method == auth.AuthMethod.SERVER_TRUST.value:
            return {"ssl": False}
        if challenge.method == auth.AuthMethod.DIGEST.value:
            return {
                "auth": None,
                "middlewares": (
                    aiohttp.DigestAuthMiddleware(credential.username, credential.password),
                ),
            }
        return {"auth": aiohttp.BasicAuth(credential.username, credential.password)}

    async def close(self) -> None:
        """Close the session if we created it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args) -> None:
        """Async context manager exit."""
        await self.close()
