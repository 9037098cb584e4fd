"""Logging configuration for the Telegraf provisioner.

Provides configurable logging with:
- File-based logging with rotation
- Console output for the operator
- Performance timing helpers for remote steps

Environment Variables:
    PROVISIONER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    PROVISIONER_LOG_FILE: Path to log file (default: ~/.telegraf-provisioner/provisioner.log)
    PROVISIONER_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    PROVISIONER_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from telegraf_provisioner.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("upload")
    def upload_file(self, ...):
        ...

    # Or use context manager for sections:
    with timed_section("influx_backup", host="10.0.0.5"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("telegraf_provisioner.perf")
main_logger = logging.getLogger("telegraf_provisioner")

_CONSOLE_HANDLER_NAME = "provisioner-console"


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("PROVISIONER_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".telegraf-provisioner" / "provisioner.log"
    path_str = os.environ.get("PROVISIONER_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects PROVISIONER_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger writing to its own file

    Calling it again only adjusts the console level.
    """
    log_level = logging.DEBUG if verbose else get_log_level()

    for handler in main_logger.handlers:
        if handler.get_name() == _CONSOLE_HANDLER_NAME:
            handler.setLevel(log_level)
            return

    log_file = get_log_file()
    max_size_mb = int(os.environ.get("PROVISIONER_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("PROVISIONER_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-40s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Operators read the console, so keep it to the message
    console_handler = logging.StreamHandler()
    console_handler.set_name(_CONSOLE_HANDLER_NAME)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "provisioner-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    main_logger.addHandler(console_handler)
    main_logger.addHandler(file_handler)

    # Timing lines go to their own file only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    # paramiko is chatty at INFO
    paramiko_logger = logging.getLogger("paramiko")
    paramiko_logger.setLevel(logging.WARNING)
    paramiko_logger.addHandler(file_handler)

    main_logger.debug(
        f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
    )


def _format_timing(operation: str, target: Optional[str], elapsed: float, outcome: str) -> str:
    return f"{operation:20s} | {target or 'N/A':21s} | {elapsed:8.2f}ms | {outcome}"


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of a function.

    Args:
        operation: Name of the operation (e.g., "connect", "exec", "upload")
        target: Optional host label (can also be inferred from self.target_label)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            label = target
            if label is None and args and hasattr(args[0], "target_label"):
                label = args[0].target_label

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_format_timing(operation, label, elapsed, f"FAIL: {e}"))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.info(_format_timing(operation, label, elapsed, "OK"))
            return result

        return wrapper

    return decorator


@contextmanager
def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Context manager for timing code sections.

    Usage:
        with timed_section("influx_backup", target="10.0.0.5:22", files=3):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _format_timing(operation, target, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
    elapsed = (time.perf_counter() - start) * 1000
    msg = _format_timing(operation, target, elapsed, "OK")
    if extra_str:
        msg += f" | {extra_str}"
    perf_logger.info(msg)
