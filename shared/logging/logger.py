import logging
from datetime import datetime
from pathlib import Path

LOG_DIR = Path("logs")
LOG_DIR.mkdir(exist_ok=True)

_LOGGERS = {}
_CONSOLE_HANDLERS = []
_CONSOLE_LEVEL = logging.INFO

# One log file per process run, shared by every named logger.
_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")


def get_logger(
    name: str,
    *,
    runtime: str = "eznoprimes",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.app, twitch.chat)
    - runtime: log file prefix
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(_CONSOLE_LEVEL)
    logger.addHandler(console)
    _CONSOLE_HANDLERS.append(console)

    # ------------------------------
    # File handler (one per run, always DEBUG)
    # ------------------------------
    logfile = LOG_DIR / f"{runtime}-{_RUN_STAMP}.log"

    file_handler = logging.FileHandler(logfile, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger


def set_debug(enabled: bool) -> None:
    """
    Switch console output between INFO and DEBUG for existing and future
    loggers. File output always records DEBUG.
    """
    global _CONSOLE_LEVEL

    _CONSOLE_LEVEL = logging.DEBUG if enabled else logging.INFO
    for handler in _CONSOLE_HANDLERS:
        handler.setLevel(_CONSOLE_LEVEL)
