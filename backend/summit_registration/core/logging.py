import logging
import sys
from logging.handlers import RotatingFileHandler

from summit_registration.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
NOISY_LOGGERS = ('uvicorn', 'sqlalchemy', 'apscheduler', 'httpx')


def _file_handler(path: str, level) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT
    )
    handler.setLevel(level)
    return handler


def setup_logging():
    """
    Configure the root logger once per process start: stdout always,
    plus a rotating file when LOG_FILE is set. Safe to call again; the
    previous handlers are replaced.
    """
    level = settings.LOG_LEVEL.upper()
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        try:
            handlers.append(_file_handler(settings.LOG_FILE, level))
        except OSError as e:
            # Read-only filesystems still get console logs
            print(f"File logging disabled: {e}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
