import logging
import os

logger = logging.getLogger("admitone")
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

if not logger.handlers:
    sh = logging.StreamHandler()
    sh.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(sh)
