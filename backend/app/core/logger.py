import logging
from pathlib import Path

from app.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
ROOT_LOGGER_NAME = "giftlink"

# Third-party loggers that drown out request logs at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx")


def _file_handler(log_file: str, root: logging.Logger) -> logging.Handler | None:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path.resolve()):
            return None
    return logging.FileHandler(log_path, encoding="utf-8")


def configure_logging() -> logging.Logger:
    level_name = (settings.log_level or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()

    handlers: list[logging.Handler] = []
    if not root.handlers:
        handlers.append(logging.StreamHandler())
    if settings.log_file:
        handler = _file_handler(settings.log_file, root)
        if handler is not None:
            handlers.append(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    return logger


def scrub_path(path: str) -> str:
    """Path safe for logs and metrics keys.

    Share tokens are capabilities, so the segment after ``/shares/`` is masked.
    """
    if path.startswith("/shares/"):
        return "/shares/{token}"
    return path
