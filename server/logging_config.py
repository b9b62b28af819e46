import logging
from pathlib import Path
from typing import Optional

SERVICE_LOGGER = "petstore"

# e.g. "2026-10-17 12:00:00 petstore INFO    document_store | Inserted pets:1 (2 index entries)"
LOG_FORMAT = "%(asctime)s {service} %(levelname)-7s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so repeated create_app() calls add no duplicates.
_HANDLER_TAG = "_petstore_handler"


def setup_logging(level: str = "INFO", logfile: Optional[str] = None, service: str = SERVICE_LOGGER) -> logging.Logger:
    """
    Sends every module logger through the root logger to stderr, and to
    `logfile` when one is configured.  Returns the service's own logger.

    Unknown level names fall back to INFO.  The redis client library is held
    at WARNING so connection chatter stays out of DEBUG runs.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logging.getLogger("redis").setLevel(logging.WARNING)

    if any(getattr(h, _HANDLER_TAG, False) for h in root.handlers):
        return logging.getLogger(service)

    formatter = logging.Formatter(fmt=LOG_FORMAT.format(service=service), datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        root.addHandler(handler)

    return logging.getLogger(service)
