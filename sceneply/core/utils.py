from __future__ import annotations
import logging
import math

def get_logger(name: str = "sceneply") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def format_number(value: float) -> str:
    """Shortest round-trip text for a float; integral values drop the '.0'."""
    v = float(value)
    if math.isfinite(v) and v.is_integer():
        return str(int(v))
    return repr(v)
