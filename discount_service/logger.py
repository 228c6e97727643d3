import logging
import sys

from discount_service.config import get_settings

logger = logging.getLogger("discount_service")
logger.setLevel(get_settings().log_level)

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", "%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(handler)

# uvicorn installs root handlers; keep records from printing twice
logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger("routers.coupons")``."""
    return logging.getLogger(f"discount_service.{name}") if name else logger
