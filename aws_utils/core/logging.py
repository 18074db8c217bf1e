"""
Logging for aws-utils.

Everything aws-utils prints to stdout is data meant for pipes (CSV, IP
addresses, stack names), so log records always go to stderr via a Rich
handler. ``--log-file`` adds a plain-text copy with timestamps.

By default only warnings are shown. Debug mode (``--debug`` or a
non-empty ``DEBUG`` variable) lowers every logger to DEBUG and turns on
botocore's request and response logging, the equivalent of an SDK wire
trace.

Example
-------
>>> from aws_utils.core.logging import setup_logging, get_logger
>>>
>>> setup_logging(debug=True)
>>> get_logger(__name__).debug("Assuming role")
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Silenced unless debugging; botocore.endpoint and botocore.parsers carry
# the request and response bodies.
AWS_SDK_LOGGERS = ("boto3", "botocore", "botocore.endpoint", "botocore.parsers", "urllib3")


def _stderr_handler(console: Optional[Console], debug: bool) -> logging.Handler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=debug,
        show_path=debug,
        markup=False,
        rich_tracebacks=debug,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(path: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    log_file: Optional[str] = None,
    debug: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Route log records to stderr, and optionally to ``log_file``.

    Calling this again replaces the handlers installed by the previous
    call, so the CLI can be invoked repeatedly in one process.

    Args:
        log_file: Also append records to this file
        debug: Log at DEBUG, AWS SDK wire logging included
        console: Rich console for the stderr handler
    """
    level = logging.DEBUG if debug else logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_aws_utils", False):
            root.removeHandler(handler)
            handler.close()

    handlers = [_stderr_handler(console, debug)]
    if log_file:
        handlers.append(_file_handler(log_file))

    for handler in handlers:
        handler._aws_utils = True
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    sdk_level = logging.DEBUG if debug else logging.WARNING
    for name in AWS_SDK_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)

    root.debug("Debug logging enabled%s", f", copying to {log_file}" if log_file else "")


def get_logger(name: str) -> logging.Logger:
    """Return the logger for an aws-utils module."""
    return logging.getLogger(name)
