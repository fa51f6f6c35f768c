"""Settings: instance info, sync status and the logout/reset lifecycle."""
import logging
from typing import Dict, Optional, Tuple

from monica.client.auth import CredentialStore, NoCredentialsError, instance_type
from monica.client.errors import sanitize_for_log, user_message
from monica.db.store import LocalRecordStore
from monica.models.records import RECORD_KINDS
from monica.sync.engine import SyncEngine, SyncSummary

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    return "•" * 10 + token[-4:] if len(token) > 4 else "•" * 10


class SettingsViewModel:
    def __init__(
        self,
        credentials: CredentialStore,
        engine,
        sync_engine: Optional[SyncEngine] = None,
    ):
        """
        Args:
            credentials: CredentialStore that also owns the response cache.
            engine: SQLAlchemy engine backing the local store.
            sync_engine: SyncEngine for sync_now(); None when offline.
        """
        self.credentials = credentials
        self.sync_engine = sync_engine
        self.store = sync_engine.store if sync_engine else LocalRecordStore(engine)
        self.instance_url: Optional[str] = None
        self.masked_token = ""
        self.instance_type: Optional[str] = None
        self.is_syncing = False
        self.error_message: Optional[str] = None
        self.last_summary: Optional[SyncSummary] = None

    def load_settings(self) -> None:
        try:
            saved = self.credentials.load()
        except NoCredentialsError:
            self.instance_url = None
            self.masked_token = ""
            self.instance_type = None
            return
        self.instance_url = saved["api_url"]
        self.masked_token = mask_token(saved["api_token"])
        self.instance_type = instance_type(saved["api_url"])

    def sync_statistics(self) -> Dict[str, Tuple[int, int, int]]:
        """{kind: (total, pending, failed)}"""
        return {kind: self.store.statistics(cls) for kind, cls in RECORD_KINDS.items()}

    async def sync_now(self) -> Optional[SyncSummary]:
        if self.sync_engine is None:
            self.error_message = "Not connected to Monica"
            return None
        self.is_syncing = True
        self.error_message = None
        try:
            self.last_summary = await self.sync_engine.sync_all()
            return self.last_summary
        except Exception as exc:
            self.error_message = f"Sync failed: {user_message(exc)}"
            logger.error("Manual sync failed: %s", sanitize_for_log(str(exc)))
            return None
        finally:
            self.is_syncing = False

    def clear_local_data(self) -> Dict[str, int]:
        self.credentials.cache.clear()
        return self.store.clear_all()

    def logout(self) -> None:
        """Forget the credentials, the response cache and every local record."""
        self.credentials.clear()
        self.clear_local_data()
        self.instance_url = None
        self.masked_token = ""
        self.instance_type = None
        self.last_summary = None
        logger.info("Logged out; local data cleared")
