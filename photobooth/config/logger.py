# photobooth/config/logger.py
import logging
import sys
from typing import Optional


def get_logger(name: str, tag: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """Module logger writing to stdout, configured once per name."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    prefix = f"[{tag}] " if tag else ""
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(f'%(asctime)s [%(levelname)s] {prefix}%(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False  # Mencegah log ganda ke root logger
    return logger
