"""Creates the data directory and empty order / offer / expiration job tables."""
import logging

from orderflow.config import settings
from orderflow.database import db

logging.basicConfig(level=settings.LOG_LEVEL)
log = logging.getLogger("init_db")

for table in ("orders", "offers", "expiration_jobs"):
    path = db._file_path(table)
    if path.exists():
        log.info("%s already exists", path)
    else:
        db.ensure_table(table)
        log.info("Created %s", path)
