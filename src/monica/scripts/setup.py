"""
Interactive setup wizard for the Monica client.

Prompts for the instance URL and a personal API token, verifies them
against the server (GET /api/me) and saves them to ~/.monica/ with
owner-only permissions (0700 dir / 0600 file).

Usage:
    python -m monica setup
    python -m monica.scripts.setup   (direct invocation)

Re-run any time the token is revoked or expires.
"""
import asyncio
import getpass
import sys

from monica.client.auth import (
    CLOUD_HOST,
    CredentialStore,
    InvalidCredentialsInput,
    instance_type,
)
from monica.client.errors import MonicaAPIError


async def _verify_and_save(store: CredentialStore, url: str, token: str) -> None:
    client = await store.authenticate_and_save(url, token)
    await client.aclose()


def run_setup() -> None:
    store = CredentialStore()

    print("\n📇 Monica Client — Setup\n")
    print(f"Credentials will be stored in: {store._dir}\n")

    if store.has_credentials():
        print("⚠️  Existing credentials were found.")
        overwrite = input("Overwrite them? [y/N] ").strip().lower()
        if overwrite != "y":
            print("Setup cancelled. Existing credentials unchanged.")
            sys.exit(0)

    url = input(f"Monica URL [https://{CLOUD_HOST}]: ").strip() or f"https://{CLOUD_HOST}"
    token = getpass.getpass("API token: ").strip()

    print("\nVerifying with Monica...")
    try:
        asyncio.run(_verify_and_save(store, url, token))
    except InvalidCredentialsInput as exc:
        print(f"\n❌ {exc}")
        sys.exit(1)
    except MonicaAPIError as exc:
        print(f"\n❌ Verification failed: {exc.message}")
        if exc.recovery_suggestion:
            print(exc.recovery_suggestion)
        sys.exit(1)

    kind = "Monica cloud" if instance_type(url) == "cloud" else "self-hosted Monica"
    print(f"\n✅ Connected to {kind}. Credentials saved to {store._dir}")
    print("Run `python -m monica pull` to download your data.\n")


if __name__ == "__main__":
    run_setup()
