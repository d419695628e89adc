import logging
import os
import sys

_DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _level_from_env(default=logging.INFO):
    """Read the level name from ``FIELDODE_LOG_LEVEL``, falling back to *default*."""
    name = os.environ.get("FIELDODE_LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def setup_logging(level=None, format_string=_DEFAULT_FORMAT):
    """Send library log records to stdout.

    Parameters
    ----------
    level : int, optional
        Logging level; ``FIELDODE_LOG_LEVEL`` or INFO when omitted.
    format_string : str
        Record format.
    """
    if level is None:
        level = _level_from_env()
    logging.basicConfig(level=level, format=format_string, stream=sys.stdout)
    logging.getLogger("fieldode").setLevel(level)


def set_log_level(level) -> None:
    """Change the level of the library logger, e.g. ``set_log_level("DEBUG")``."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)


# Setup logging when this module is imported
setup_logging()

logger = logging.getLogger("fieldode")
