"""Logging setup: console, rotating handbook log, and a separate LLM call log."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LLM_LOGGER_NAME = "tools.agent_sdk_client"
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "langgraph")

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        str(path),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str | Path] = None,
    console_enabled: bool = True,
) -> None:
    """Configure application-wide logging.

    Args:
        level: Logging level for console and the main log file.
        log_dir: Directory for log files. Defaults to ./data/logs.
        console_enabled: Whether to echo log records to stderr.
    """
    log_dir = Path(log_dir or "./data/logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(log_dir / "handbook.log", level, formatter))

    # Prompts and raw responses go to llm_calls.log at DEBUG regardless of level
    llm_logger = logging.getLogger(LLM_LOGGER_NAME)
    llm_logger.handlers.clear()
    llm_logger.setLevel(logging.DEBUG)
    llm_logger.addHandler(_rotating_handler(log_dir / "llm_calls.log", logging.DEBUG, formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug("Logging initialized: level=%s, dir=%s", level, log_dir)
