import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_NOISY_LOGGERS = ("sqlalchemy.engine", "aio_pika", "aiormq", "uvicorn.access")


def configure_logging(level: str = "INFO") -> None:
    """Add one stdout handler to the root logger. Safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    if not any(getattr(h, "room_inventory", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.room_inventory = True
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
