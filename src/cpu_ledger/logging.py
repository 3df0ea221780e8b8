"""Diagnostic output for cpu-ledger.

This module provides:
1. Console notices on stderr with Rich formatting (interrupt, skipped tick, failures)
2. Structlog configuration (configure) for structured events

stdout is reserved for the ranking table, so nothing here writes to it.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from cpu_ledger.config import Config

_console = Console(stderr=True, highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Console notices
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


def notice(level: str, msg: str) -> None:
    """Print a timestamped notice on stderr.

    Args:
        level: One of info, warn, error
        msg: Message to print (can include Rich markup)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    _console.print(f"[dim]{ts}[/] {lvl} {msg}")


def interrupted() -> None:
    """Tell the user the run was cut short."""
    notice("warn", "Monitor interrupted. Printing partial results...")


def tick_skipped(tick: int, reason: str) -> None:
    """Report a tick abandoned because the process table was unreadable."""
    notice("warn", f"Tick {tick} skipped [dim]({escape(reason)})[/]")


def startup_failed(reason: str) -> None:
    """Report a failure that prevents sampling from starting."""
    notice("error", f"Cannot start: {escape(reason)}")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure(config: Config, verbose: bool = False) -> None:
    """Route structlog through stdlib logging to stderr and an optional JSON file.

    Args:
        config: Application config (logging section)
        verbose: Force debug level regardless of config
    """
    level_name = "debug" if verbose else config.logging.level
    level = getattr(logging, level_name.upper())

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
        structlog.processors.add_log_level,
    ]

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(stderr_handler)

    log_file = config.logging.file_path
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
                foreign_pre_chain=shared,
            )
        )
        root.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
