import logging
import sys

from pricescan.settings.db_settings import settings

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "pricescan") -> logging.Logger:
    """Return a stdout logger; handlers are attached only once per name."""
    log = logging.getLogger(name)
    if log.handlers:
        return log

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    log.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    log.addHandler(handler)
    log.propagate = False
    return log


logger = get_logger()
