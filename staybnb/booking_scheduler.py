import asyncio
import logging

from sqlalchemy.orm import Session, sessionmaker

from .services import booking_service

logger = logging.getLogger("booking_scheduler")


def complete_stays_once(session_factory: sessionmaker) -> int:
    """
    Opens a session and completes every confirmed stay that has ended.
    """
    db: Session = session_factory()
    try:
        return booking_service.complete_finished_stays(db)
    except Exception:
        logger.exception("Error while completing finished stays")
        db.rollback()
        return 0
    finally:
        db.close()


async def run_booking_scheduler(session_factory: sessionmaker, interval_seconds: int):
    """
    Main background loop for the scheduler.
    """
    while True:
        logger.info("Scheduler waking up to complete finished stays...")
        # The session work is blocking, keep it off the event loop
        await asyncio.to_thread(complete_stays_once, session_factory)

        # Wait for the next poll interval
        await asyncio.sleep(interval_seconds)
