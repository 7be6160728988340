"""Named loggers for reconciliation and flip events."""

from __future__ import annotations

import logging

ORDER_LOGGER_NAME = "order_log"
TRADE_LOGGER_NAME = "trade_log"


def _get_tagged_logger(name: str, tag: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(f"%(asctime)s | {tag} | %(levelname)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def get_order_logger() -> logging.Logger:
    """Return configured reconciliation logger instance."""
    return _get_tagged_logger(ORDER_LOGGER_NAME, "ORDER")


def get_trade_logger() -> logging.Logger:
    """Return configured flip placement logger instance."""
    return _get_tagged_logger(TRADE_LOGGER_NAME, "FLIP")


def set_log_level(level: int | str) -> None:
    """Apply one level to both tracker loggers (e.g. "DEBUG" from settings)."""
    for logger in (get_order_logger(), get_trade_logger()):
        logger.setLevel(level)
