"""
Main entrypoint: runs the periodic sync scheduler, or one-off commands.

FastAPI runs separately under uvicorn (local status and record views).

Usage:
    python -m monica setup          # one-time credential setup
    python -m monica sync           # push queued records once
    python -m monica pull           # refresh the local mirror
    python -m monica                # starts the scheduler
    uvicorn monica.api.main:app --host 127.0.0.1 --port 8000  # starts API
"""
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_setup() -> None:
    from monica.scripts.setup import run_setup
    run_setup()


async def _run_sync() -> None:
    from monica.client.auth import CredentialsRejectedError, NoCredentialsError
    from monica.db.engine import get_engine
    from monica.sync.engine import run_sweep

    try:
        summary = await run_sweep(get_engine())
    except (NoCredentialsError, CredentialsRejectedError) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    print(
        f"Synced {summary.synced}, failed {summary.failed}, "
        f"purged {summary.purged} of {summary.attempted} queued records."
    )


async def _run_scheduler() -> None:
    from monica.client.auth import CredentialStore
    from monica.config import get_settings
    from monica.db.engine import get_engine
    from monica.scheduler.jobs import build_scheduler

    settings = get_settings()
    engine = get_engine()

    if not CredentialStore().has_credentials():
        logger.error("No Monica credentials found. Run `python -m monica setup` first.")
        sys.exit(1)

    scheduler = build_scheduler(engine)
    scheduler.start()
    logger.info("Scheduler started (sync every %d minutes)", settings.sync_interval_minutes)

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        logger.info("Goodbye.")


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else None
    if command == "setup":
        _run_setup()
    elif command == "sync":
        asyncio.run(_run_sync())
    elif command == "pull":
        from monica.scripts.pull import main as pull_main
        pull_main(sys.argv[2:])
    else:
        asyncio.run(_run_scheduler())
