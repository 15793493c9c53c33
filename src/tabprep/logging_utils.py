"""Handler setup for scripts that run the pipeline.

tabprep modules only log through ``logging.getLogger(__name__)``; nothing is
printed until a script calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _log_path(log_file: Union[str, Path], logger_name: str) -> Path:
    path = Path(log_file)
    if path.is_dir():
        path = path / f"{logger_name}.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    logger_name: str = "tabprep",
) -> logging.Logger:
    """Send ``logger_name`` records to stderr and, optionally, to ``log_file``.

    Calling it again replaces the handlers installed by the previous call.
    ``log_file`` may name an existing directory, in which case the records
    go to ``<logger_name>.log`` inside it.
    """
    logger = logging.getLogger(logger_name)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(_log_path(log_file, logger_name), encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


__all__ = ["configure_logging", "LOG_FORMAT"]
