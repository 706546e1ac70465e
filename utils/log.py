"""
log.py - Logging Setup

Timestamped, severity-labelled console logging for the batch run.
Adds a SUCCESS level between INFO and WARNING for completed uploads and moves.
"""

import logging
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger once for the whole run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    # googleapiclient is chatty at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


def log_success(logger: logging.Logger, message: str, *args) -> None:
    """Log at SUCCESS level."""
    logger.log(SUCCESS, message, *args)
