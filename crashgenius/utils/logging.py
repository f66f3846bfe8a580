"""Logging setup for the crash analysis core."""

import functools
import inspect
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Dict, Iterator, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s%(context)s - %(message)s"

# Fields are per asyncio task; never mutated in place
_log_context: ContextVar[Dict[str, str]] = ContextVar("crashgenius_log_context", default={})


class ContextFilter(logging.Filter):
    """
    Copy the active log context onto each record.

    Every field is set as a record attribute, and ``record.context`` holds a
    rendered ``" [provider=mistral session=1f2e]"`` suffix (empty when no
    context is active) for use in format strings.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        fields = _log_context.get()
        for key, value in fields.items():
            setattr(record, key, value)
        record.context = (
            " [" + " ".join(f"{key}={value}" for key, value in fields.items()) + "]"
            if fields else ""
        )
        return True


_context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_format: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string; may reference %(context)s and context fields
        log_file: Optional path to log file

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    # httpx logs every request URL at INFO, which would include query strings
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    return root_logger


@contextmanager
def log_context(**fields) -> Iterator[None]:
    """
    Add fields to every record logged inside the block.

    Example:
        with log_context(provider="mistral", session="1f2e"):
            logger.info("Streaming reply")  # ... INFO [provider=mistral session=1f2e] - Streaming reply
    """
    merged = {**_log_context.get(), **{key: str(value) for key, value in fields.items()}}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


def with_context(**context_kwargs):
    """Decorator running a function (or coroutine) inside log_context(**context_kwargs)."""
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_context(**context_kwargs):
                    return await func(*args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with log_context(**context_kwargs):
                return func(*args, **kwargs)

        return wrapper
    return decorator


def mask_secret(secret: Optional[str]) -> str:
    """Render a credential for logs without exposing it."""
    if not secret:
        return "<none>"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-2:]}"
