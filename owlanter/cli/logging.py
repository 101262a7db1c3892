"""CLI logging configuration with file output.

Log files live under ``~/.local/share/owlanter/logs/``, one per command and
site so runs against different sites don't interleave::

    <command>_<site>.log   # e.g. pull_12.log, watch_7.log
    <command>.log          # when no site is known

Follow a watch session with::

    tail -f ~/.local/share/owlanter/logs/watch_12.log
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from owlanter.cli.utils import console

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "owlanter" / "logs"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed.

    ``OWLANTER_LOG_DIR`` overrides the default location.
    """
    log_dir = Path(os.getenv("OWLANTER_LOG_DIR") or LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file(command: str, site_id: int | None = None) -> Path:
    stem = f"{command}_{site_id}" if site_id is not None else command
    return get_log_dir() / f"{stem}.log"


def configure_cli_logging(
    command: str,
    *,
    site_id: int | None = None,
    verbose: bool = False,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command.

    Sets up:
    - File handler: DEBUG-level rotating log at
      ``~/.local/share/owlanter/logs/<command>_<site>.log``
    - Console handler: WARNING (INFO with ``verbose``)

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command, site_id=site_id)

    root_logger = logging.getLogger("owlanter")

    # Remove handlers from a previous call
    for handler in root_logger.handlers[:]:
        if isinstance(handler, (logging.FileHandler, RichHandler)):
            root_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)

    if console_level is None:
        console_level = logging.INFO if verbose else logging.WARNING
    console_handler = RichHandler(console=console, show_path=False)
    console_handler.setLevel(console_level)
    root_logger.addHandler(console_handler)

    # NOTSET would defer to the root logger's WARNING threshold
    root_logger.setLevel(min(file_level, console_level))

    return log_file
