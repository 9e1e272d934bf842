import logging
import sys
from typing import Optional

from docgate.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "tika")

_configured = False


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured

    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    logging.getLogger("docgate").setLevel(level)

    if _configured:
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name or "docgate")


# Initialize logging on import
setup_logging()
