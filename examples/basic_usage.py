"""
Basic credbridge usage example.

Reads the MATTR_* and NZBN_* environment variables and demonstrates:
- Creating a CredentialBridge
- Issuing a collection credential
- Verifying and recording a scan of it
- Starting the business-registry authorization flow
- Revoking the credential
"""

import asyncio

from credbridge import Config, CredentialBridge, configure_logging
from credbridge.errors import CredBridgeError
from credbridge.issuance import CollectionCredentialRequest
from credbridge.session import Session


async def basic_example():
    """Demonstrate basic credbridge usage"""
    print("Basic credbridge Example")
    print("=" * 30)

    # 1. Load configuration
    config = Config.from_env()
    configure_logging(config.log_level)

    # 2. Create the bridge
    bridge = CredentialBridge.new(config)
    print("✓ Created CredentialBridge")

    try:
        # 3. Issue a collection credential
        record = await bridge.issuance.issue_collection_credential(CollectionCredentialRequest(
            bin_identifier="BIN-042",
            row_identifier="ROW-7",
            harvest_start_datetime="2025-03-01T08:00:00+13:00",
            harvest_end_datetime="2025-03-01T12:30:00+13:00",
            picker_id="PICKER-1",
            picker_name="Alex Picker",
            nzbn="9429000000000",
            orchard_id="ORCHARD-1",
        ))
        print(f"✓ Issued {record.collection_id} as {record.id}")

        # 4. Verify a scan and record it
        outcome = await bridge.verify_and_record(record.encoded, user_id="inspector-1")
        print(f"✓ Verified: {outcome.verified} (first scan: {outcome.first_verification})")

        # 5. Start the registry authorization flow for a user session
        await bridge.session_store.set(Session(session_id="demo-session", user_id="inspector-1"))
        url = await bridge.build_authorization_url("demo-session")
        print(f"✓ Send the browser to: {url}")

        # 6. Revoke the credential
        result = await bridge.revoke(record.encoded)
        print(f"✓ Revoked: {result.external_credential_id}")

    except CredBridgeError as e:
        print(f"✗ {e.code.value}: {e.message}")

    finally:
        # 7. Cleanup
        await bridge.close()
        print("✓ CredentialBridge closed")


if __name__ == "__main__":
    asyncio.run(basic_example())
