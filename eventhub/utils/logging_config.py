"""Logging configuration for the application."""

import logging
import sys
from os import getenv


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the application."""
    level_name = (level or getenv("LOG_LEVEL", "INFO")).upper()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))
    # uvicorn reload 등으로 중복 호출될 때 핸들러가 쌓이지 않도록
    if not any(getattr(h, "_eventhub", False) for h in root_logger.handlers):
        console_handler._eventhub = True
        root_logger.addHandler(console_handler)

    # Set higher log levels for noisy components
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
