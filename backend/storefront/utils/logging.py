import logging
import sys

from storefront.config import settings


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger writing to stdout. The handler is attached only once
    per logger so repeated imports don't duplicate lines.
    """
    log = logging.getLogger(name)
    log.setLevel(settings.LOG_LEVEL.upper())
    if not log.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log.addHandler(h)
    return log
