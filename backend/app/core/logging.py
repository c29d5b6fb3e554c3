import logging
import sys

from app.core.config import Settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(cfg: Settings) -> logging.Logger:
    """Configure the ``app`` logger tree once per process."""
    logger = logging.getLogger("app")
    if logger.handlers:
        return logger

    level = logging.DEBUG if cfg.ENV == "dev" else getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
