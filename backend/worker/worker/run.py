"""Notification redelivery worker.

Transitions commit first and write their notifications right after; anything
left undelivered (crash, database hiccup) is picked up here from the approval
log and written without re-running the transition.
"""

import argparse
import logging
import time

from campus_events import notifications
from campus_events.config import configure_logging, get_settings
from campus_events.db import get_engine

logger = logging.getLogger("worker")


def sweep() -> int:
    return notifications.redeliver_pending(get_engine())


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Redeliver pending event notifications.")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args(argv)

    configure_logging()
    settings = get_settings()

    if args.once:
        sweep()
        return

    logger.info("Worker started (redelivery every %ss).", settings.notify_retry_interval_sec)
    while True:
        try:
            sweep()
        except Exception:
            logger.exception("redelivery sweep failed")
        time.sleep(settings.notify_retry_interval_sec)


if __name__ == "__main__":
    main()
