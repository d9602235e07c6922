"""
Tests for verification, reconciliation and revocation.
"""

import pytest

from credbridge.credentials import CollectionCredential, CredentialStatus, CredentialType, DeliveryCredential
from credbridge.errors import (
    AmbiguousCredentialError,
    ConfigurationError,
    CredentialDataError,
    CredentialNotFoundError,
    UpstreamAuthError,
    UpstreamError,
)

from .conftest import ISSUER


async def seed_collection(bridge, external_id="cred-abc", collection_id="COL-20250101-000002"):
    await bridge.collection_store.save(CollectionCredential(
        id=external_id,
        collection_id=collection_id,
        bin_identifier="BIN-1",
        row_identifier="ROW-1",
        harvest_start_datetime="2025-01-01T08:00:00Z",
        picker_id="P-1",
        picker_name="Pat",
        nzbn="9429000000000",
        orchard_id="ORCH-1",
        status=CredentialStatus.ISSUED,
    ))


async def seed_delivery(bridge, external_id="cred-del", delivery_id="DEL-20250101-000007"):
    await bridge.delivery_store.save(DeliveryCredential(
        id=external_id,
        delivery_id=delivery_id,
        origin_address="Orchard Rd",
        destination_address="Packhouse Ln",
        delivery_start_datetime="2025-01-01T10:00:00Z",
        driver_id="D-1",
        driver_name="Dee",
        vehicle_id="V-1",
        nzbn="9429000000000",
        status=CredentialStatus.ISSUED,
    ))


class TestCredentialTrustVerifier:

    @pytest.mark.asyncio
    async def test_request_shape(self, bridge, upstream):
        upstream.verify_response = {"verified": True, "decoded": {"collectionId": "COL-20250101-000002"}}

        result = await bridge.verify("CSC:abc")

        assert result.verified
        assert result.decoded_claims == {"collectionId": "COL-20250101-000002"}
        (call,) = upstream.calls("/v2/credentials/compact/verify")
        assert call["json"] == {
            "payload": "CSC:abc",
            "trustedIssuers": [ISSUER],
            "assertValidFrom": True,
            "assertValidUntil": True,
            "checkRevocation": True,
        }
        assert call["headers"]["Authorization"] == "Bearer platform-token-1"

    @pytest.mark.asyncio
    async def test_payload_field_accepted_for_claims(self, bridge, upstream):
        upstream.verify_response = {"verified": False, "payload": {"deliveryId": "DEL-1"},
                                    "errors": [{"message": "expired"}, "revoked"]}

        result = await bridge.verify("CSC:abc")

        assert not result.verified
        assert result.decoded_claims == {"deliveryId": "DEL-1"}
        assert result.errors == ["expired", "revoked"]

    @pytest.mark.asyncio
    async def test_empty_payload(self, bridge, upstream):
        with pytest.raises(CredentialDataError):
            await bridge.verify("   ")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_no_trusted_issuers(self, bridge):
        bridge.verifier.trusted_issuers = []
        with pytest.raises(ConfigurationError):
            await bridge.verify("CSC:abc")

    @pytest.mark.asyncio
    async def test_401_clears_token_cache(self, bridge, upstream):
        await bridge.get_access_token()
        upstream.verify_status = 401
        upstream.verify_response = {"message": "token revoked"}

        with pytest.raises(UpstreamAuthError):
            await bridge.verify("CSC:abc")

        assert bridge.broker.cache.token is None

    @pytest.mark.asyncio
    async def test_upstream_failure(self, bridge, upstream):
        upstream.verify_status = 500
        upstream.verify_response = {"message": "boom"}

        with pytest.raises(UpstreamError) as exc_info:
            await bridge.verify("CSC:abc")
        assert exc_info.value.upstream_status == 500


class TestVerificationReconciler:

    @pytest.mark.asyncio
    async def test_known_identifier_recorded_with_external_id(self, bridge):
        await seed_collection(bridge)

        outcome = await bridge.reconcile_and_record(
            {"collectionId": "COL-20250101-000002"}, True, user_id="u1", mobile_app_id="app-1"
        )

        assert outcome.verified
        assert outcome.credential_type is CredentialType.COLLECTION
        assert outcome.credential_id == "cred-abc"
        assert outcome.recorded
        assert outcome.first_verification

        (record,) = await bridge.verification_store.get_records()
        assert record.credential_id == "cred-abc"
        assert record.user_id == "u1"
        assert record.mobile_application_id == "app-1"

    @pytest.mark.asyncio
    async def test_second_verification_not_first(self, bridge):
        await seed_collection(bridge)
        claims = {"collectionId": "COL-20250101-000002"}

        await bridge.reconcile_and_record(claims, True)
        outcome = await bridge.reconcile_and_record(claims, True)

        assert not outcome.first_verification

    @pytest.mark.asyncio
    async def test_unregistered_identifier_rejected_without_record(self, bridge):
        with pytest.raises(CredentialNotFoundError) as exc_info:
            await bridge.reconcile_and_record({"deliveryId": "DEL-20250101-000001"}, True)

        assert exc_info.value.identifier == "DEL-20250101-000001"
        assert exc_info.value.status_code == 404
        assert await bridge.verification_store.get_records() == []

    @pytest.mark.asyncio
    async def test_lenient_mode_records_unverified(self, bridge):
        outcome = await bridge.reconcile_and_record(
            {"deliveryId": "DEL-20250101-000001", "id": "cred-x"}, True, validate_identifier=False
        )

        assert not outcome.verified
        assert outcome.credential_id == "cred-x"
        (record,) = await bridge.verification_store.get_records()
        assert record.verified is False

    @pytest.mark.asyncio
    async def test_lenient_mode_records_missing_identifier(self, bridge):
        outcome = await bridge.reconcile_and_record(
            {"id": "cred-1"}, True, caller_type="delivery", validate_identifier=False
        )

        assert outcome.credential_type is CredentialType.DELIVERY
        assert not outcome.verified
        assert outcome.credential_id == "cred-1"
        assert outcome.domain_id is None
        assert outcome.recorded
        (record,) = await bridge.verification_store.get_records()
        assert record.credential_id == "cred-1"
        assert record.credential_type is CredentialType.DELIVERY
        assert record.verified is False

    @pytest.mark.asyncio
    async def test_claims_type_beats_caller_hint(self, bridge):
        await seed_delivery(bridge)

        outcome = await bridge.reconcile_and_record(
            {"deliveryId": "DEL-20250101-000007"}, True, caller_type="collection"
        )

        assert outcome.credential_type is CredentialType.DELIVERY
        assert outcome.credential_id == "cred-del"

    @pytest.mark.asyncio
    async def test_hint_type_without_identifier(self, bridge):
        with pytest.raises(CredentialDataError):
            await bridge.reconcile_and_record({"id": "cred-1"}, True, caller_type="DeliveryCredential")

    @pytest.mark.asyncio
    async def test_unknown_type_recorded_as_unknown(self, bridge):
        outcome = await bridge.reconcile_and_record({"id": "cred-1"}, True)

        assert outcome.credential_type is CredentialType.UNKNOWN
        assert outcome.recorded
        (record,) = await bridge.verification_store.get_records()
        assert record.credential_type is CredentialType.UNKNOWN

    @pytest.mark.asyncio
    async def test_unknown_type_without_id_not_recorded(self, bridge):
        outcome = await bridge.reconcile_and_record({"foo": "bar"}, True)

        assert not outcome.recorded
        assert await bridge.verification_store.get_records() == []

    @pytest.mark.asyncio
    async def test_audit_failure_is_swallowed(self, bridge, caplog):
        await seed_collection(bridge)

        async def broken_insert(record):
            raise RuntimeError("disk full")

        bridge.verification_store.insert = broken_insert
        outcome = await bridge.reconcile_and_record({"collectionId": "COL-20250101-000002"}, True)

        assert outcome.verified
        assert not outcome.recorded
        assert "disk full" in caplog.text

    @pytest.mark.asyncio
    async def test_verify_and_record(self, bridge, upstream):
        await seed_collection(bridge)
        upstream.verify_response = {"verified": True, "decoded": {"collectionId": "COL-20250101-000002"}}

        outcome = await bridge.verify_and_record("CSC:abc", user_id="u1")

        assert outcome.verified
        assert outcome.credential_id == "cred-abc"


class TestRevocationCoordinator:

    @pytest.mark.asyncio
    async def test_revokes_via_local_external_id(self, bridge, upstream):
        await seed_collection(bridge)
        upstream.verify_response = {"verified": True, "decoded": {"collectionId": "COL-20250101-000002"}}

        result = await bridge.revoke("CSC:abc")

        assert result.success
        assert result.external_credential_id == "cred-abc"
        (call,) = upstream.calls("/v2/credentials/cred-abc/revocation-status")
        assert call["json"] == {"isRevoked": True}
        record = await bridge.collection_store.find_by_external_id("cred-abc")
        assert record.status is CredentialStatus.REVOKED

    @pytest.mark.asyncio
    async def test_unknown_type_uses_claim_id(self, bridge, upstream):
        upstream.verify_response = {"verified": True, "decoded": {"credentialId": "cred-zzz"}}

        result = await bridge.revoke("CSC:abc")

        assert result.external_credential_id == "cred-zzz"
        assert upstream.revoked == {"cred-zzz": True}

    @pytest.mark.asyncio
    async def test_ambiguous(self, bridge, upstream):
        upstream.verify_response = {"verified": True, "decoded": {"foo": "bar"}}

        with pytest.raises(AmbiguousCredentialError):
            await bridge.revoke("CSC:abc")
        assert upstream.revoked == {}

    @pytest.mark.asyncio
    async def test_not_decodable(self, bridge, upstream):
        upstream.verify_response = {"verified": False, "errors": ["malformed"]}

        with pytest.raises(CredentialDataError):
            await bridge.revoke("CSC:abc")

    @pytest.mark.asyncio
    async def test_unregistered_identifier(self, bridge, upstream):
        upstream.verify_response = {"verified": True, "decoded": {"collectionId": "COL-20250101-000099"}}

        with pytest.raises(CredentialNotFoundError):
            await bridge.revoke("CSC:abc")
        assert upstream.revoked == {}

    @pytest.mark.asyncio
    async def test_upstream_failure_leaves_local_record(self, bridge, upstream):
        await seed_collection(bridge)
        upstream.verify_response = {"verified": True, "decoded": {"collectionId": "COL-20250101-000002"}}
        upstream.revocation_status = 500

        with pytest.raises(UpstreamError):
            await bridge.revoke("CSC:abc")

        record = await bridge.collection_store.find_by_external_id("cred-abc")
        assert record.status is CredentialStatus.ISSUED
