"""
Client for the credential-signing platform.

Every call is bearer-authenticated with a token from the
``ClientCredentialsBroker``. A 401 from any endpoint clears the broker's
cached token so the next call fetches a fresh one.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..auth.client_credentials import ClientCredentialsBroker
from ..errors import ErrorSource, UpstreamError
from ..http.client import UpstreamClient, UpstreamResponse, upstream_error_for


logger = logging.getLogger(__name__)

SIGN_PATH = "/v2/credentials/compact/sign"
VERIFY_PATH = "/v2/credentials/compact/verify"
QRCODE_PATH = "/v2/credentials/compact/qrcode"
REVOCATION_STATUS_PATH = "/v2/credentials/{credential_id}/revocation-status"


@dataclass
class SignedCredential:
    """A credential signed by the platform."""

    id: str
    encoded: str
    decoded: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VerifyFlags:
    """Checks the platform performs during verification."""

    assert_valid_from: bool = True
    assert_valid_until: bool = True
    check_revocation: bool = True


class SigningPlatformClient:
    """
    Thin wrapper over the platform's compact-credential endpoints.

    Args:
        api_url: Platform base URL
        broker: Source of bearer tokens
        http: Upstream HTTP client
    """

    def __init__(self,
                 api_url: str,
                 broker: ClientCredentialsBroker,
                 http: Optional[UpstreamClient] = None):
        self.api_url = api_url.rstrip("/")
        self.broker = broker
        self.http = http or UpstreamClient(source=ErrorSource.SIGNING_PLATFORM)

    async def sign(self, payload: Dict[str, Any]) -> SignedCredential:
        """Sign a credential payload into compact form."""
        data = await self._call_json("POST", SIGN_PATH, {"payload": payload},
                                     "Failed to sign credential")
        encoded = data.get("encoded") or data.get("credential")
        if not encoded:
            raise UpstreamError(
                "Signing platform returned no encoded credential",
                upstream_body=data,
                source=ErrorSource.SIGNING_PLATFORM,
            )

        decoded = data.get("decoded") or {}
        credential_id = data.get("id") or decoded.get("id") or decoded.get("jti")
        if not credential_id:
            raise UpstreamError(
                "Signing platform returned no credential id",
                upstream_body=data,
                source=ErrorSource.SIGNING_PLATFORM,
            )

        logger.info(f"Signed credential {credential_id}")
        return SignedCredential(id=str(credential_id), encoded=encoded, decoded=decoded)

    async def verify(self,
                     payload: str,
                     trusted_issuers: List[str],
                     flags: Optional[VerifyFlags] = None) -> Dict[str, Any]:
        """Verify a compact credential, returning the platform's raw response."""
        flags = flags or VerifyFlags()
        body = {
            "payload": payload,
            "trustedIssuers": list(trusted_issuers),
            "assertValidFrom": flags.assert_valid_from,
            "assertValidUntil": flags.assert_valid_until,
            "checkRevocation": flags.check_revocation,
        }
        return await self._call_json("POST", VERIFY_PATH, body, "Failed to verify credential")

    async def qrcode(self, encoded: str) -> bytes:
        """Render a compact credential as a QR code image."""
        response = await self._call("POST", QRCODE_PATH, {"payload": encoded},
                                    "Failed to generate QR code")
        if response.content_type == "application/json":
            # some tenants wrap the image as base64 JSON
            data = response.body()
            if isinstance(data, dict) and data.get("qrcode"):
                return base64.b64decode(data["qrcode"])
        return response.raw

    async def set_revocation_status(self, credential_id: str, is_revoked: bool) -> None:
        path = REVOCATION_STATUS_PATH.format(credential_id=credential_id)
        await self._call("POST", path, {"isRevoked": is_revoked},
                         "Failed to update revocation status")
        logger.info(f"Revocation status of {credential_id} set to {is_revoked}")

    async def get_revocation_status(self, credential_id: str) -> bool:
        path = REVOCATION_STATUS_PATH.format(credential_id=credential_id)
        data = await self._call_json("GET", path, None, "Failed to get revocation status")
        return bool(data.get("isRevoked", False))

    async def _call_json(self, method: str, path: str, body: Any, message: str) -> Dict[str, Any]:
        response = await self._call(method, path, body, message)
        data = response.body()
        if not isinstance(data, dict):
            raise UpstreamError(
                f"{message}: unexpected response body",
                upstream_status=response.status,
                upstream_body=data,
                source=ErrorSource.SIGNING_PLATFORM,
            )
        return data

    async def _call(self, method: str, path: str, body: Any, message: str) -> UpstreamResponse:
        token = await self.broker.get_access_token()
        response = await self.http.request(
            method,
            f"{self.api_url}{path}",
            json_body=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.ok:
            return response

        logger.error(f"{message}: {response.status}")
        if response.status == 401:
            self.broker.clear_cache()
        raise upstream_error_for(response, message, ErrorSource.SIGNING_PLATFORM)
