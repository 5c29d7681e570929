"""
Tests for the aiohttp transport.

Tests cover:
- Request serialization (canonical JSON bodies, headers)
- Response decoding (JSON, text, empty)
- Network failures propagating unchanged
- A full wallet flow over real HTTP
"""

import asyncio
import json

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from fake_service import FakeCoordinationService

from cosigner import ClientConfig, TxProposalRequest, WalletClient
from cosigner.network.http_client import HTTPTransport

BASE_PATH = "/copay/api"


class _Recorder:
    def __init__(self, status=200, payload=None, text=None, delay=0.0):
        self.status = status
        self.payload = payload
        self.text = text
        self.delay = delay
        self.seen = []

    async def handle(self, request):
        raw = await request.read()
        self.seen.append((request.method, request.path, dict(request.headers), raw))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.text is not None:
            return web.Response(status=self.status, text=self.text)
        if self.payload is None:
            return web.Response(status=self.status)
        return web.json_response(self.payload, status=self.status)


async def _serve(handler):
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    server = TestServer(app)
    await server.start_server()
    return server


class TestHTTPTransport:
    @pytest.mark.asyncio
    async def test_post_sends_canonical_body(self):
        recorder = _Recorder(payload={"walletId": "w1"})
        server = await _serve(recorder.handle)
        transport = HTTPTransport(str(server.make_url(BASE_PATH)))
        try:
            status, body = await transport.execute(
                "POST", "/v1/wallets/", {"x-identity": "abc"}, {"n": 3, "m": 2}
            )
        finally:
            await transport.close()
            await server.close()

        assert (status, body) == (200, {"walletId": "w1"})
        method, path, headers, raw = recorder.seen[0]
        assert (method, path) == ("POST", BASE_PATH + "/v1/wallets/")
        assert raw == b'{"m":2,"n":3}'
        assert headers["x-identity"] == "abc"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_get_sends_no_body(self):
        recorder = _Recorder(payload=[])
        server = await _serve(recorder.handle)
        transport = HTTPTransport(str(server.make_url(BASE_PATH)))
        try:
            status, body = await transport.execute("GET", "/v1/addresses/", {}, None)
        finally:
            await transport.close()
            await server.close()
        assert (status, body) == (200, [])
        assert recorder.seen[0][3] == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "recorder, expected",
        [
            (_Recorder(status=502, text="Bad Gateway"), (502, "Bad Gateway")),
            (_Recorder(status=500), (500, None)),
            (_Recorder(status=400, payload={"code": "WALLET_FULL"}), (400, {"code": "WALLET_FULL"})),
        ],
    )
    async def test_error_bodies_returned_raw(self, recorder, expected):
        server = await _serve(recorder.handle)
        transport = HTTPTransport(str(server.make_url(BASE_PATH)))
        try:
            assert await transport.execute("GET", "/v1/balance/", {}, None) == expected
        finally:
            await transport.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_timeout_propagates(self):
        recorder = _Recorder(payload={}, delay=1.0)
        server = await _serve(recorder.handle)
        transport = HTTPTransport(str(server.make_url(BASE_PATH)), timeout=0.05)
        try:
            with pytest.raises(asyncio.TimeoutError):
                await transport.execute("GET", "/v1/balance/", {}, None)
        finally:
            await transport.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_connection_error_propagates(self):
        server = await _serve(_Recorder(payload={}).handle)
        url = str(server.make_url(BASE_PATH))
        await server.close()

        transport = HTTPTransport(url, timeout=2.0)
        try:
            with pytest.raises(aiohttp.ClientError):
                await transport.execute("GET", "/v1/balance/", {}, None)
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_external_session_not_closed(self):
        session = aiohttp.ClientSession()
        transport = HTTPTransport("http://localhost:1", session=session)
        await transport.close()
        assert not session.closed
        await session.close()

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self):
        async with HTTPTransport("http://localhost:1") as transport:
            session = transport._get_session()
        assert session.closed


class TestWalletOverHTTP:
    @pytest.mark.asyncio
    async def test_wallet_flow_over_http(self):
        service = FakeCoordinationService()

        async def forward(request):
            raw = await request.read()
            body = json.loads(raw) if raw else None
            headers = {key.lower(): value for key, value in request.headers.items()}
            url = request.path_qs[len(BASE_PATH):]
            status, payload = await service.execute(request.method, url, headers, body)
            if isinstance(payload, str):
                return web.Response(status=status, text=payload)
            return web.json_response(payload, status=status)

        server = await _serve(forward)
        config = ClientConfig(base_url=str(server.make_url(BASE_PATH)), network="testnet")
        alice = WalletClient(config)
        bob = WalletClient(config)
        try:
            secret = await alice.create_wallet("family", "alice", 2, 2)
            await bob.join_wallet(secret, "bob")
            assert await alice.open_wallet()
            assert await bob.open_wallet()

            address = await alice.create_address()
            assert address["path"] == "m/0/0"

            await alice.send_tx_proposal(TxProposalRequest("2N8hwP1WmJrFF5QWABn38y63uYLhnJYJYTF", 1000, "rent"))
            txps = await bob.get_tx_proposals()
            assert txps[0]["message"] == "rent"
            assert (await bob.sign_tx_proposal(txps[0]))["status"] == "pending"
        finally:
            await alice.close()
            await bob.close()
            await server.close()
