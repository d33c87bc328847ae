"""
Logging setup built on loguru.

Every module imports the shared `logger` from here:

    >>> from portfolio_sim.utils.logger import logger
    >>> logger.info("Fetched {} bars for {}", 250, "AAPL")

`configure_logging()` replaces loguru's default sink with a stderr sink at the
requested level and, optionally, a daily-rotated file sink. It is idempotent:
calling it again removes the previous sinks first, so repeated CLI runs or test
sessions never duplicate output.
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} | {message}"


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    rotation: str = "1 day",
    retention: str = "30 days",
) -> None:
    """
    Configure the global loguru logger.

    Args:
        level: Minimum level for all sinks (e.g. "DEBUG", "INFO").
        log_dir: If given, also write to `<log_dir>/portfolio_sim_{date}.log`.
        rotation: loguru rotation policy for the file sink.
        retention: loguru retention policy for the file sink.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        logger.add(
            path / "portfolio_sim_{time:YYYY-MM-DD}.log",
            level=level.upper(),
            format=LOG_FORMAT,
            rotation=rotation,
            retention=retention,
            enqueue=True,
        )

    logger.debug("Logging configured at level {}", level.upper())


__all__ = ["logger", "configure_logging"]
