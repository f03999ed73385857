import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import logging
from datetime import date

from stay_booking.db.engine import engine
from stay_booking.logging_config import setup_logging
from stay_booking.services.bookings import complete_finished_stays
from stay_booking.services.jobs import InlineJobQueue

setup_logging()
logger = logging.getLogger(__name__)


def main() -> None:
    """
    Complete every Confirmed stay whose checkout date has passed.

    Meant to run once a day from cron. Notifications are written inline.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today (default: current UTC date)",
    )
    args = parser.parse_args()

    logger.info("Starting stay completion sweep")

    try:
        completed = complete_finished_stays(engine, today=args.date, jobs=InlineJobQueue())
        logger.info("Stay completion sweep finished, completed=%s", completed)
    except Exception:
        logger.exception("Stay completion sweep failed")
        raise


if __name__ == "__main__":
    main()
