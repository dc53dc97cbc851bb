import logging
import sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(module)-15s] - %(message)s"


def setup_logger(level: int = logging.INFO) -> logging.Logger:
    """Configure the root logger to write to stdout.

    Existing handlers are dropped so repeated calls (one per CLI run or test)
    do not duplicate output. The handler accepts everything; the logger
    level decides what gets through.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    logging.debug("Logger configured at level %s", logging.getLevelName(level))
    return logger
