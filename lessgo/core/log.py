"""Logging setup shared by every module of the store.

One call to ``configure_logging`` at bootstrap sets the root format and
level; modules then ask ``get_logger`` for a named child of ``lessgo``.
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, level.upper(), logging.INFO),
    )


def get_logger(name: str) -> logging.Logger:
    if not name.startswith("lessgo"):
        name = f"lessgo.{name}"
    return logging.getLogger(name)
