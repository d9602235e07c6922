"""
Shared fixtures: an in-process fake of both upstream authorities.
"""

import asyncio
import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from credbridge.core.config import Config, RegistryConfig, SigningPlatformConfig


CLIENT_ID = "platform-client"
CLIENT_SECRET = "platform-secret"
REGISTRY_CLIENT_ID = "registry-client"
REGISTRY_CLIENT_SECRET = "registry-secret"
ISSUER = "did:web:issuer.example.com"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeUpstream:
    """
    Records every request and answers like the two upstream authorities.

    ``token_mode`` controls the platform token endpoint:
      "form"   accepts credentials in the form body
      "basic"  rejects form credentials with 401, accepts HTTP Basic
      "reject" rejects everything with 401
    """

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.token_mode = "form"
        self.token_counter = 0
        self.expires_in = 3600
        self.verify_response: Dict[str, Any] = {"verified": True, "decoded": {}}
        self.verify_status = 200
        self.revoked: Dict[str, bool] = {}
        self.revocation_status = 200
        self.qrcode_status = 200
        self.sign_counter = 0
        self.registry_token_counter = 0
        self.registry_refresh_status = 200
        self.organisation_parts: Dict[str, List[Dict[str, Any]]] = {}

    def calls(self, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["path"] == path]

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/oauth/token", self.platform_token)
        app.router.add_post("/v2/credentials/compact/sign", self.sign)
        app.router.add_post("/v2/credentials/compact/verify", self.verify)
        app.router.add_post("/v2/credentials/compact/qrcode", self.qrcode)
        app.router.add_post("/v2/credentials/{id}/revocation-status", self.set_revocation)
        app.router.add_get("/v2/credentials/{id}/revocation-status", self.get_revocation)
        app.router.add_post("/oauth2/v2.0/token", self.registry_token)
        app.router.add_get("/nzbn/v5/entities/{nzbn}/organisation-parts", self.list_parts)
        app.router.add_post("/nzbn/v5/entities/{nzbn}/organisation-parts", self.create_part)
        app.router.add_post("/slow", self.slow)
        return app

    async def _record(self, request: web.Request) -> Dict[str, Any]:
        raw = await request.read()
        entry = {
            "method": request.method,
            "path": request.path,
            "query": dict(request.query),
            "headers": dict(request.headers),
            "raw": raw,
            "form": {},
            "json": None,
            "basic": None,
        }
        if request.content_type == "application/x-www-form-urlencoded" and raw:
            entry["form"] = dict(await request.post())
        elif request.content_type == "application/json" and raw:
            entry["json"] = json.loads(raw)
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Basic "):
            entry["basic"] = aiohttp.BasicAuth.decode(auth)
        self.requests.append(entry)
        return entry

    def _bearer_ok(self, entry: Dict[str, Any]) -> bool:
        return entry["headers"].get("Authorization", "").startswith("Bearer platform-token-")

    async def platform_token(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        form = entry["form"]

        accepted = False
        if self.token_mode == "form":
            accepted = form.get("client_id") == CLIENT_ID and form.get("client_secret") == CLIENT_SECRET
        elif self.token_mode == "basic":
            basic = entry["basic"]
            accepted = basic is not None and basic.login == CLIENT_ID and basic.password == CLIENT_SECRET

        if not accepted or form.get("grant_type") != "client_credentials":
            return web.json_response({"error": "invalid_client"}, status=401)

        self.token_counter += 1
        return web.json_response({
            "access_token": f"platform-token-{self.token_counter}",
            "token_type": "Bearer",
            "expires_in": self.expires_in,
        })

    async def sign(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not self._bearer_ok(entry):
            return web.json_response({"message": "unauthorized"}, status=401)

        self.sign_counter += 1
        payload = entry["json"]["payload"]
        credential_id = f"cred-{self.sign_counter}"
        return web.json_response({
            "id": credential_id,
            "encoded": f"CSC:{credential_id}",
            "decoded": {"id": credential_id, **payload},
        })

    async def verify(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not self._bearer_ok(entry):
            return web.json_response({"message": "unauthorized"}, status=401)
        return web.json_response(self.verify_response, status=self.verify_status)

    async def qrcode(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not self._bearer_ok(entry) or self.qrcode_status != 200:
            return web.json_response({"message": "qr failed"}, status=self.qrcode_status)
        return web.Response(body=b"\x89PNG-fake", content_type="image/png")

    async def set_revocation(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not self._bearer_ok(entry):
            return web.json_response({"message": "unauthorized"}, status=401)
        if self.revocation_status != 200:
            return web.json_response({"message": "boom"}, status=self.revocation_status)
        self.revoked[request.match_info["id"]] = entry["json"]["isRevoked"]
        return web.json_response({"isRevoked": entry["json"]["isRevoked"]})

    async def get_revocation(self, request: web.Request) -> web.Response:
        await self._record(request)
        return web.json_response({"isRevoked": self.revoked.get(request.match_info["id"], False)})

    async def registry_token(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        basic = entry["basic"]
        if basic is None or basic.login != REGISTRY_CLIENT_ID or basic.password != REGISTRY_CLIENT_SECRET:
            return web.json_response({"error": "invalid_client"}, status=401)

        grant_type = entry["query"].get("grant_type") or entry["form"].get("grant_type")
        if grant_type == "refresh_token" and self.registry_refresh_status != 200:
            return web.json_response({"error": "invalid_grant"}, status=self.registry_refresh_status)
        if grant_type not in ("authorization_code", "refresh_token"):
            return web.json_response({"error": "unsupported_grant_type"}, status=400)

        self.registry_token_counter += 1
        return web.json_response({
            "access_token": f"registry-token-{self.registry_token_counter}",
            "refresh_token": f"registry-refresh-{self.registry_token_counter}",
            "token_type": "Bearer",
            "expires_in": 3600,
        })

    async def slow(self, request: web.Request) -> web.Response:
        await self._record(request)
        await asyncio.sleep(1)
        return web.json_response({})

    async def list_parts(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not entry["headers"].get("Authorization", "").startswith("registry-token-"):
            return web.json_response({"errorDescription": "unauthorized"}, status=401)
        return web.json_response({"items": self.organisation_parts.get(request.match_info["nzbn"], [])})

    async def create_part(self, request: web.Request) -> web.Response:
        entry = await self._record(request)
        if not entry["headers"].get("Authorization", "").startswith("registry-token-"):
            return web.json_response({"errorDescription": "unauthorized"}, status=401)
        part = dict(entry["json"], opn="OPN-1")
        self.organisation_parts.setdefault(request.match_info["nzbn"], []).append(part)
        return web.json_response(part, status=201)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def server(upstream):
    test_server = TestServer(upstream.app())
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
def base_url(server):
    return str(server.make_url("")).rstrip("/")


@pytest.fixture
def config(base_url):
    return Config(
        platform=SigningPlatformConfig(
            api_url=base_url,
            client_id=CLIENT_ID,
            client_secret=CLIENT_SECRET,
            trusted_issuers=[ISSUER],
        ),
        registry=RegistryConfig(
            api_url=base_url,
            subscription_key="sub-key",
            authorize_url=f"{base_url}/oauth2/v2.0/authorize",
            token_url=f"{base_url}/oauth2/v2.0/token",
            client_id=REGISTRY_CLIENT_ID,
            client_secret=REGISTRY_CLIENT_SECRET,
            redirect_uri="http://localhost:3001/nzbn/oauth/callback",
        ),
        http_timeout=5.0,
    )


def qr_png_b64() -> str:
    return base64.b64encode(b"\x89PNG-fake").decode("ascii")


@pytest_asyncio.fixture
async def bridge(config, clock):
    from credbridge.core.bridge import CredentialBridge

    instance = CredentialBridge.new(config, clock=clock)
    yield instance
    await instance.close()
