from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional


def setup_debug_logging(
    base_dir: Path,
    *,
    level: int = logging.DEBUG,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the ``secalert`` logger tree to write to ``debug.log`` inside
    ``log_dir`` (default ``<base_dir>/logs``).
    Safe to call multiple times; handlers are added once.
    """
    log_dir = Path(log_dir) if log_dir is not None else Path(base_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "debug.log"

    logger = logging.getLogger("secalert")
    if not any(isinstance(handler, logging.FileHandler) for handler in logger.handlers):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
