"""
Pull script: refresh the local mirror from the server.

Usage:
    python -m monica pull --max-contacts 50

Downloads every contact page into the contact mirror, then the call logs,
debts, conversations and relationships of each contact, and finally the
mood entries. Pauses between contacts to stay clear of rate limits. A
contact that fails is logged and skipped.

Rows with unpushed local changes are never overwritten.
"""
import argparse
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


@dataclass
class PullSummary:
    contacts: int = 0
    records: int = 0
    failed_contacts: int = 0


async def pull_all(client, store, max_contacts: Optional[int] = None, sleep_seconds: float = 0.5) -> PullSummary:
    from monica.client.errors import MonicaAPIError, sanitize_for_log
    from monica.models.records import (
        CallLogRecord,
        ConversationRecord,
        DayEntryRecord,
        DebtRecord,
        RelationshipRecord,
    )

    contacts = await client.list_all_contacts()
    if max_contacts is not None:
        contacts = contacts[:max_contacts]
    summary = PullSummary(contacts=store.import_contacts(contacts))
    logger.info("Mirrored %d contacts", summary.contacts)

    per_contact = [
        (CallLogRecord, client.list_call_logs),
        (DebtRecord, client.list_debts),
        (ConversationRecord, client.list_conversations),
        (RelationshipRecord, client.list_relationships),
    ]

    for index, contact in enumerate(contacts):
        try:
            for cls, fetch in per_contact:
                remote = await fetch(contact.id)
                summary.records += store.reconcile(cls, remote, contact_id=contact.id)
        except MonicaAPIError as exc:
            summary.failed_contacts += 1
            logger.warning("Failed to pull contact %d: %s", contact.id, sanitize_for_log(exc.message))
        if index < len(contacts) - 1:
            await asyncio.sleep(sleep_seconds)

    try:
        summary.records += store.reconcile(DayEntryRecord, await client.list_day_entries())
    except MonicaAPIError as exc:
        logger.warning("Failed to pull day entries: %s", sanitize_for_log(exc.message))

    logger.info(
        "Pull complete. Contacts: %d, records updated: %d, failed contacts: %d",
        summary.contacts,
        summary.records,
        summary.failed_contacts,
    )
    return summary


async def _pull(max_contacts: Optional[int]) -> None:
    from monica.client.auth import CredentialStore
    from monica.config import get_settings
    from monica.db.engine import get_engine
    from monica.db.store import LocalRecordStore

    settings = get_settings()
    store = LocalRecordStore(get_engine())

    logger.info("Connecting to Monica (loading saved credentials)...")
    client = await CredentialStore().connect()
    try:
        await pull_all(client, store, max_contacts=max_contacts, sleep_seconds=settings.pull_sleep_seconds)
    finally:
        await client.aclose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Refresh the local mirror from Monica")
    parser.add_argument(
        "--max-contacts",
        type=int,
        default=None,
        help="Only pull records for the first N contacts (default: all)",
    )
    args = parser.parse_args(argv)
    asyncio.run(_pull(args.max_contacts))


if __name__ == "__main__":
    main()
