"""Logging for the backup shell: one stdout handler on the root logger."""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(threadName)s %(name)s: %(message)s"

# libraries that log every scheduled run or pooled connection at INFO
NOISY_LOGGERS = ("apscheduler", "urllib3")


def configure_logging(level: int = logging.INFO) -> None:
    # scheduled backups log from a worker thread, hence threadName
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", stream=sys.stdout)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
