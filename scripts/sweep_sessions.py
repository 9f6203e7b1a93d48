"""
One-shot auto-completion sweep.

Run from cron (e.g. every 5 minutes):
    python -m scripts.sweep_sessions
"""

import logging
import sys

from mentorhub.database import SessionLocal
from mentorhub.main import configure_logging
from mentorhub.services.scheduling_service import SchedulingService

logger = logging.getLogger(__name__)


def sweep() -> int:
    db = SessionLocal()
    try:
        completed = SchedulingService(db).sweep_auto_completions()
    except Exception as exc:
        db.rollback()
        logger.error("Sweep failed: %s", exc)
        return 1
    finally:
        db.close()

    logger.info("Sweep finished: %d session(s) completed", len(completed))
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(sweep())
