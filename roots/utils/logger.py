"""Logging configuration using Loguru.

Context is attached with ``logger.bind(**context)`` rather than passed as
keyword arguments, so messages carrying ids are never run through
``str.format``.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[module]}:{function}:{line} - {message}"

# Keys bound by get_logger or by the formatters themselves
_RESERVED = {"module", "rendered_context"}


def render_context(extra: dict) -> str:
    """Render bound context as sorted ``key=value`` pairs."""
    return " ".join(
        f"{key}={value}" for key, value in sorted(extra.items()) if key not in _RESERVED
    )


def _with_context(template: str):
    def formatter(record) -> str:
        record["extra"].setdefault("module", record["name"])
        record["extra"]["rendered_context"] = render_context(record["extra"])
        suffix = " | {extra[rendered_context]}" if record["extra"]["rendered_context"] else ""
        return template + suffix + "\n{exception}"

    return formatter


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = False,
    log_dir: str = "logs",
    file_rotation: str = "10 MB",
    file_retention: str = "7 days",
    compression: str = "zip",
    serialize: bool = True,
) -> None:
    """
    Configure Loguru for the archive.

    The console sink appends bound context (entity ids, content ids,
    tx refs) to each line. The optional file sink writes one JSON record
    per line when ``serialize`` is set, with the context under ``extra``.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=_with_context(CONSOLE_FORMAT),
        colorize=True,
    )

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Audit trail of archive activity
        logger.add(
            log_path / "roots_{time:YYYY-MM-DD}.log",
            level=level,
            format=_with_context(FILE_FORMAT),
            rotation=file_rotation,
            retention=file_retention,
            compression=compression,
            serialize=serialize,
            enqueue=True,
        )


def get_logger(name: str):
    """Get a logger instance bound to a module name."""
    return logger.bind(module=name)
