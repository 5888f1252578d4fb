"""
Transport tests.  The HTTP libraries are replaced by fakes so nothing
goes on the network; the transports are driven through real
operations, so events travel the same way they do in production.
"""

import asyncio
import ssl
import threading
from unittest import mock

import aiohttp
import pytest
import requests
from requests.auth import HTTPBasicAuth
from requests.auth import HTTPDigestAuth

from davkit.io import AiohttpTransport
from davkit.io import RequestsTransport
from davkit.io import Transport
from davkit.io.base import wire_headers
from davkit.lib import error
from davkit.lib.auth import Credential
from davkit.operation import Operation
from davkit.protocol.types import DAVMethod
from davkit.protocol.types import DAVRequest
from davkit.protocol.types import Success

BASE = "https://dav.example.com/"
CREDENTIAL = Credential("user", "secret")
BASIC_CHALLENGE = {"WWW-Authenticate": 'Basic realm="dav"'}
DIGEST_CHALLENGE = {"WWW-Authenticate": 'Digest realm="dav", nonce="abc", qop="auth"'}


def make_operation(transport, verb="get", path="/a.txt", **kwargs):
    kwargs.setdefault("credential", CREDENTIAL)
    return Operation(verb, BASE, path, transport=transport, **kwargs)


class TestWireHeaders:
    def test_cache_bypass(self):
        request = DAVRequest(DAVMethod.GET, BASE, headers={"Depth": "1"})
        assert wire_headers(request) == {
            "Depth": "1",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

    def test_no_bypass(self):
        request = DAVRequest(DAVMethod.GET, BASE, bypass_cache=False)
        assert wire_headers(request) == {}

    def test_explicit_header_wins(self):
        request = DAVRequest(DAVMethod.GET, BASE, headers={"cache-control": "max-age=0"})
        headers = wire_headers(request)
        assert headers["cache-control"] == "max-age=0"
        assert "Cache-Control" not in headers
        assert headers["Pragma"] == "no-cache"

    def test_transports_follow_the_protocol(self):
        assert isinstance(RequestsTransport(session=mock.MagicMock()), Transport)
        assert isinstance(AiohttpTransport(session=mock.MagicMock()), Transport)


# =========================================================================
# requests
# =========================================================================


def fake_response(status, body=b"", headers=None):
    response = mock.MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.iter_content.return_value = [body[i : i + 3] for i in range(0, len(body), 3)]
    return response


@pytest.fixture
def session():
    return mock.MagicMock()


@pytest.fixture
def requests_transport(session):
    transport = RequestsTransport(session=session)
    yield transport
    transport.executor.shutdown(wait=True)


class TestRequestsTransport:
    @pytest.mark.asyncio
    async def test_get(self, session, requests_transport):
        session.request.return_value = fake_response(200, b"Hello")
        outcome = await make_operation(requests_transport).run()

        assert outcome == Success(b"Hello")
        session.request.assert_called_once()
        args, kwargs = session.request.call_args
        assert args == ("GET", BASE + "a.txt")
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == 60
        assert kwargs["verify"] is True
        assert kwargs["headers"]["Cache-Control"] == "no-cache"
        assert kwargs["headers"]["Pragma"] == "no-cache"

    @pytest.mark.asyncio
    async def test_put_body(self, session, requests_transport):
        session.request.return_value = fake_response(201)
        op = make_operation(requests_transport, "put", data="Hello", content_type="text/plain")
        assert await op.run() == Success(None)
        _, kwargs = session.request.call_args
        assert kwargs["data"] == b"Hello"
        assert kwargs["headers"]["Content-Type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_basic_challenge(self, session, requests_transport):
        session.request.side_effect = [
            fake_response(401, headers=BASIC_CHALLENGE),
            fake_response(200, b"ok"),
        ]
        outcome = await make_operation(requests_transport).run()
        assert outcome == Success(b"ok")
        assert session.request.call_count == 2
        assert "auth" not in session.request.call_args_list[0].kwargs
        assert session.request.call_args_list[1].kwargs["auth"] == HTTPBasicAuth(
            "user", "secret"
        )

    @pytest.mark.asyncio
    async def test_digest_challenge(self, session, requests_transport):
        session.request.side_effect = [
            fake_response(401, headers=DIGEST_CHALLENGE),
            fake_response(207, b"<x/>"),
        ]
        outcome = await make_operation(requests_transport).run()
        assert outcome.ok
        assert session.request.call_args_list[1].kwargs["auth"] == HTTPDigestAuth(
            "user", "secret"
        )

    @pytest.mark.asyncio
    async def test_wrong_password(self, session, requests_transport):
        session.request.side_effect = [
            fake_response(401, headers=BASIC_CHALLENGE),
            fake_response(401, b"go away", headers=BASIC_CHALLENGE),
            fake_response(200, b"never"),
        ]
        op = make_operation(requests_transport)
        outcome = await op.run()
        assert isinstance(outcome.error, error.AuthorizationError)
        await op.lifecycle._handle.future
        assert outcome.status == 401
        assert session.request.call_count == 2
        assert op.is_cancelled

    @pytest.mark.asyncio
    async def test_no_credential(self, session, requests_transport):
        session.request.return_value = fake_response(401, headers=BASIC_CHALLENGE)
        op = make_operation(requests_transport, credential=None)
        outcome = await op.run()
        await op.lifecycle._handle.future
        assert outcome.status == 401
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_not_found(self, session, requests_transport):
        session.request.return_value = fake_response(404, b"<html>nope</html>")
        op = make_operation(requests_transport)
        outcome = await op.run()
        await op.lifecycle._handle.future
        assert isinstance(outcome.error, error.NotFoundError)
        assert op.exchange.body == b""

    @pytest.mark.asyncio
    async def test_untrusted_certificate_allowed(self, session, requests_transport):
        session.request.side_effect = [
            requests.exceptions.SSLError("certificate verify failed"),
            fake_response(200, b"ok"),
        ]
        op = make_operation(requests_transport, allow_untrusted_certificates=True)
        assert await op.run() == Success(b"ok")
        assert session.request.call_args_list[0].kwargs["verify"] is True
        assert session.request.call_args_list[1].kwargs["verify"] is False

    @pytest.mark.asyncio
    async def test_untrusted_certificate_rejected(self, session, requests_transport):
        ssl_error = requests.exceptions.SSLError("certificate verify failed")
        session.request.side_effect = [ssl_error]
        outcome = await make_operation(requests_transport).run()
        assert outcome.code is error.ErrorCode.TRANSPORT
        assert outcome.error.__cause__ is ssl_error
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, session, requests_transport):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        op = make_operation(requests_transport)
        outcome = await op.run()
        assert isinstance(outcome.error, error.TransportError)
        assert op.is_finished

    @pytest.mark.asyncio
    async def test_unexpected_error(self, session, requests_transport):
        ## anything the session raises ends the operation
        bad_header = ValueError("return character in header value")
        session.request.side_effect = bad_header
        op = make_operation(
            requests_transport, "put", data=b"Hello", content_type="text/plain\r\nX-Injected: 1"
        )
        outcome = await asyncio.wait_for(op.run(), 5)
        assert op.is_finished
        assert outcome.code is error.ErrorCode.TRANSPORT
        assert outcome.error.__cause__ is bad_header

    @pytest.mark.asyncio
    async def test_cancel_while_in_flight(self, session, requests_transport):
        gate = threading.Event()

        def slow_request(*args, **kwargs):
            gate.wait(5)
            return fake_response(200, b"too late")

        session.request.side_effect = slow_request
        op = make_operation(requests_transport)
        op.start()
        handle = op.lifecycle._handle
        op.cancel()
        gate.set()
        await handle.future
        await asyncio.sleep(0)

        assert handle.cancelled
        assert op.is_cancelled
        assert op.outcome.code is error.ErrorCode.CANCELLED
        assert op.exchange.body == b""

    @pytest.mark.asyncio
    async def test_close(self):
        transport = RequestsTransport()
        transport.session = mock.MagicMock()
        await transport.close()
        transport.session.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_leaves_foreign_session_open(self, session, requests_transport):
        await requests_transport.close()
        session.close.assert_not_called()


# =========================================================================
# aiohttp
# =========================================================================


class FakeContent:
    def __init__(self, chunks, stall=None):
        self.chunks = chunks
        self.stall = stall

    async def iter_chunked(self, n):
        for chunk in self.chunks:
            yield chunk
        if self.stall is not None:
            await self.stall.wait()


class FakeResponse:
    def __init__(self, status, chunks=(), headers=None, stall=None):
        self.status = status
        self.headers = headers or {}
        self.content = FakeContent(list(chunks), stall)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None


class FakeSession:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self):
        self.closed = True


def certificate_error():
    return aiohttp.ClientConnectorCertificateError(
        mock.MagicMock(), ssl.SSLCertVerificationError("certificate verify failed")
    )


class TestAiohttpTransport:
    @pytest.mark.asyncio
    async def test_get(self):
        session = FakeSession(FakeResponse(200, [b"Hel", b"lo"]))
        outcome = await make_operation(AiohttpTransport(session=session)).run()

        assert outcome == Success(b"Hello")
        ((method, url, kwargs),) = session.calls
        assert (method, url) == ("GET", BASE + "a.txt")
        assert kwargs["ssl"] is True
        assert kwargs["data"] is None
        assert kwargs["timeout"] == aiohttp.ClientTimeout(total=60)
        assert kwargs["headers"]["Cache-Control"] == "no-cache"

    @pytest.mark.asyncio
    async def test_listing(self):
        body = (
            b'<d:multistatus xmlns:d="DAV:"><d:response><d:href>/docs/</d:href>'
            b"<d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype>"
            b"</d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>"
            b"</d:response></d:multistatus>"
        )
        session = FakeSession(FakeResponse(207, [body[:40], body[40:]]))
        op = make_operation(AiohttpTransport(session=session), "listing", "/docs/", depth=0)
        outcome = await op.run()
        assert [e.href for e in outcome.result] == ["/docs/"]
        _, _, kwargs = session.calls[0]
        assert kwargs["headers"]["Depth"] == "0"
        assert kwargs["data"].startswith(b"<?xml")

    @pytest.mark.asyncio
    async def test_basic_challenge(self):
        session = FakeSession(
            FakeResponse(401, headers=BASIC_CHALLENGE),
            FakeResponse(200, [b"ok"]),
        )
        outcome = await make_operation(AiohttpTransport(session=session)).run()
        assert outcome == Success(b"ok")
        assert "auth" not in session.calls[0][2]
        assert session.calls[1][2]["auth"] == aiohttp.BasicAuth("user", "secret")

    @pytest.mark.asyncio
    async def test_digest_challenge(self):
        session = FakeSession(
            FakeResponse(401, headers=DIGEST_CHALLENGE),
            FakeResponse(200, [b"ok"]),
        )
        outcome = await make_operation(AiohttpTransport(session=session)).run()
        assert outcome.ok
        kwargs = session.calls[1][2]
        assert kwargs["auth"] is None
        (middleware,) = kwargs["middlewares"]
        assert isinstance(middleware, aiohttp.DigestAuthMiddleware)

    @pytest.mark.asyncio
    async def test_wrong_password(self):
        session = FakeSession(
            FakeResponse(401, headers=BASIC_CHALLENGE),
            FakeResponse(401, [b"go away"], headers=BASIC_CHALLENGE),
        )
        op = make_operation(AiohttpTransport(session=session))
        outcome = await op.run()
        assert isinstance(outcome.error, error.AuthorizationError)
        assert len(session.calls) == 2
        assert op.exchange.body == b""

    @pytest.mark.asyncio
    async def test_server_error(self):
        session = FakeSession(FakeResponse(503, [b"busy"]))
        op = make_operation(AiohttpTransport(session=session))
        outcome = await op.run()
        assert outcome.status == 503
        assert op.is_cancelled

    @pytest.mark.asyncio
    async def test_untrusted_certificate_allowed(self):
        session = FakeSession(certificate_error(), FakeResponse(200, [b"ok"]))
        op = make_operation(AiohttpTransport(session=session), allow_untrusted_certificates=True)
        assert await op.run() == Success(b"ok")
        assert session.calls[0][2]["ssl"] is True
        assert session.calls[1][2]["ssl"] is False

    @pytest.mark.asyncio
    async def test_untrusted_certificate_rejected(self):
        cert_error = certificate_error()
        session = FakeSession(cert_error)
        outcome = await make_operation(AiohttpTransport(session=session)).run()
        assert outcome.code is error.ErrorCode.TRANSPORT
        assert outcome.error.__cause__ is cert_error
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = FakeSession(aiohttp.ClientConnectionError("refused"))
        outcome = await make_operation(AiohttpTransport(session=session)).run()
        assert isinstance(outcome.error, error.TransportError)

    @pytest.mark.asyncio
    async def test_rejected_header_value(self):
        ## aiohttp refuses control characters in header values with ValueError
        bad_header = ValueError("Forbidden control character detected in headers")
        session = FakeSession(bad_header)
        op = make_operation(
            AiohttpTransport(session=session),
            "put",
            data=b"Hello",
            content_type="text/plain\r\nX-Injected: 1",
        )
        outcome = await asyncio.wait_for(op.run(), 5)
        assert op.is_finished
        assert outcome.code is error.ErrorCode.TRANSPORT
        assert outcome.error.__cause__ is bad_header
        assert session.calls[0][2]["headers"]["Content-Type"] == "text/plain\r\nX-Injected: 1"

    @pytest.mark.asyncio
    async def test_cancel_while_streaming(self):
        stall = asyncio.Event()
        session = FakeSession(FakeResponse(200, [b"Hel"], stall=stall))
        op = make_operation(AiohttpTransport(session=session))
        op.start()
        task = op.lifecycle._handle
        for _ in range(10):
            await asyncio.sleep(0)
        assert op.exchange.body == b"Hel"

        op.cancel(5)
        with pytest.raises(asyncio.CancelledError):
            await task
        assert op.is_cancelled
        assert op.outcome.error.cancel_code == 5
        assert op.exchange.body == b"Hel"

    @pytest.mark.asyncio
    async def test_close(self):
        session = FakeSession()
        transport = AiohttpTransport(session=session)
        await transport.close()
        assert not session.closed

        transport = AiohttpTransport()
        transport._session = session
        async with transport:
            pass
        assert session.closed
