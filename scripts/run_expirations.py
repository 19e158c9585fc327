"""
Fire due order expirations.

    python scripts/run_expirations.py            # one pass (cron style)
    python scripts/run_expirations.py --loop     # poll every EXPIRATION_POLL_SECONDS
"""
import argparse
import logging
import time

from orderflow.config import settings
from orderflow.database import db
from orderflow.services.expiration import build_worker

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("run_expirations")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--loop", action="store_true", help="keep polling instead of a single pass")
    args = parser.parse_args()

    worker = build_worker(db)
    while True:
        fired = worker.run_pending()
        log.info("Pass complete, %d job(s) fired", fired)
        if not args.loop:
            break
        time.sleep(settings.EXPIRATION_POLL_SECONDS)


if __name__ == "__main__":
    main()
