import logging
import os

from dotenv import load_dotenv

load_dotenv()

PORT = int(os.getenv("PORT", "3978"))

# only used to decide what "today" is for the default search range
LOCAL_TZ = os.getenv("TIME_ZONE", "UTC")

STORE_PATH = os.getenv("STORE_PATH", "availability_store.json")

DEFAULT_DURATION_MIN = int(os.getenv("DEFAULT_DURATION_MIN", "120"))
DEFAULT_TOP_N = int(os.getenv("DEFAULT_TOP_N", "3"))
DEFAULT_RANGE_DAYS = int(os.getenv("DEFAULT_RANGE_DAYS", "7"))
MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "92"))
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(os.cpu_count() or 4)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    logger = logging.getLogger("rehearsal_scheduler")
    if not logger.handlers:
        # avoid duplicate handlers on reload
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(ch)
    logger.setLevel(level)
    return logger
