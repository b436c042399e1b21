"""Logging utilities for bidscoin-wrangler."""

import sys
import logging
import pdb
import traceback
import datetime
from pathlib import Path
from typing import Optional

from . import config
from . import utils
from .constants import (
    VALID_LOG_TIME_MODES,
    DEFAULT_LOG_TIMES_MODE,
    DEFAULT_COLOR_MODE,
    LOG_FILE,
)


# Logger constants
ANSI_COLORS = {
    "red-foreground": "\033[31m",
    "green-foreground": "\033[32m",
    "yellow-foreground": "\033[33m",
    "blue-foreground": "\033[34m",
    "magenta-foreground": "\033[35m",
    "cyan-foreground": "\033[36m",
    "bright-red-foreground": "\033[91m",
    "bold": "\033[1m",
    "reset": "\033[0m",
}

LEVEL_COLORS = {
    logging.DEBUG: "magenta-foreground",
    logging.INFO: "green-foreground",
    logging.WARNING: "yellow-foreground",
    logging.ERROR: "red-foreground",
    logging.CRITICAL: "bright-red-foreground",
}

NORMAL_COLOR = ANSI_COLORS["blue-foreground"]
ELAPSED_COLOR = ANSI_COLORS["cyan-foreground"]
MESSAGE_COLOR = ANSI_COLORS["bold"]
RESET_COLOR = ANSI_COLORS["reset"]


class ColorAndTimeFormatter(logging.Formatter):
    def __init__(self, log_times: str = "none", color: str = "auto", *args, **keys):
        assert (
            log_times in VALID_LOG_TIME_MODES
        ), f"Invalid log_times value {log_times}."
        super().__init__(*args, **keys)
        self.log_times = log_times
        self.color = color
        self.start_time = datetime.datetime.now()  # message-to-message init

    @property
    def use_color(self):
        if self.color == "auto" and sys.stderr.isatty():
            return True
        elif self.color == "on":
            return True
        else:
            return False

    def _build_format_string(self, record, elapsed):
        """Build the log format string with appropriate colors."""
        level_color = ANSI_COLORS[LEVEL_COLORS.get(record.levelno, "reset")]
        if not self.use_color:
            reset_color = normal_color = elapsed_color = message_color = level_color = (
                ""
            )
        else:
            normal_color = NORMAL_COLOR
            elapsed_color = ELAPSED_COLOR
            message_color = MESSAGE_COLOR
            reset_color = RESET_COLOR
        log_fmt = level_color + "%(levelname)s: "
        if self.log_times in ["normal", "both"]:
            log_fmt += normal_color + "%(asctime)s.%(msecs)03d "
        if self.log_times in ["elapsed", "both"]:
            log_fmt += elapsed_color + elapsed + " "
        log_fmt += reset_color + message_color + "%(message)s" + reset_color
        return log_fmt

    def format(self, record):
        self.start_time, elapsed_str = utils.elapsed_time(self.start_time)
        log_fmt = self._build_format_string(record, elapsed_str)
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d-%H:%M:%S")
        return formatter.format(record)


class WranglerLogger:
    """Enhanced logger with error tracking and debug support.

    All output goes to stderr and the log file so that stdout remains
    reserved for command results, e.g. the activation snippet of `use`.
    """

    def __init__(
        self,
        verbose: bool = False,
        debug_mode: bool = False,
        log_times: str = DEFAULT_LOG_TIMES_MODE,
        color: str = DEFAULT_COLOR_MODE,
        log_file: Optional[Path] = LOG_FILE,
    ):
        self.verbose = verbose
        self.debug_mode = debug_mode
        self.log_times = log_times
        self.color = color
        self.log_file = log_file
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.exceptions: list[str] = []
        self.start_time = datetime.datetime.now()
        self._configure_logger()

    def _configure_logger(self):
        """Configure logger based on current settings."""
        color_and_time_formatter = ColorAndTimeFormatter(
            log_times=self.log_times, color=self.color
        )
        color_and_time_handler = logging.StreamHandler(sys.stderr)
        color_and_time_handler.setFormatter(color_and_time_formatter)
        handlers: list[logging.Handler] = [color_and_time_handler]
        if self.log_file is not None:
            Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file)
            file_handler_formatter = ColorAndTimeFormatter(
                log_times="normal", color="off"
            )
            file_handler.setFormatter(file_handler_formatter)
            handlers.append(file_handler)
        logging.basicConfig(
            level=logging.DEBUG if self.verbose else logging.INFO,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )

    def close(self) -> None:
        """Detach and close the file handler, e.g. before deleting the root."""
        logger = logging.getLogger()
        for handler in logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()

    def _lformat(self, *args) -> str:
        return " ".join(map(str, args))

    def error(self, *args) -> bool:
        """Log an error message and return False."""
        logger = logging.getLogger()
        msg = self._lformat(*args)
        self.errors.append(msg)
        logger.error(msg)
        if self.debug_mode:
            pdb.set_trace()
        return False

    def info(self, *args) -> bool:
        """Log an info message and return True."""
        logger = logging.getLogger()
        logger.info(self._lformat(*args))
        return True

    def warning(self, *args) -> bool:
        """Log a warning message and return True."""
        logger = logging.getLogger()
        msg = self._lformat(*args)
        self.warnings.append(msg)
        logger.warning(msg)
        return True

    def debug(self, *args) -> None:
        """Log a debug message."""
        logger = logging.getLogger()
        logger.debug(self._lformat(*args))
        return None  # falsy,  but neither True nor False

    def exception(self, e: BaseException, *args) -> bool:
        """Handle an exception with optional debugging."""
        msg = self._lformat(*args + (e,))
        self.exceptions.append(msg)
        logger = logging.getLogger()
        self.errors.append(msg)
        logger.error(msg)
        logger.debug("".join(traceback.format_exception(e)))
        if self.debug_mode:
            print(f"\n*** DEBUG MODE: Exception caught: {msg} ***", file=sys.stderr)
            print(f"*** Exception type: {type(e).__name__} ***", file=sys.stderr)
            traceback.print_tb(e.__traceback__)
            pdb.post_mortem(e.__traceback__)
            raise e
        return False

    @property
    def elapsed_time(self):
        return utils.elapsed_time(self.start_time)[1]

    def print_log_counters(self):
        """Log summary of logged messages."""
        self.debug(f"Exceptions: {len(self.exceptions)}")
        self.debug(f"Errors: {len(self.errors)}")
        self.debug(f"Warnings: {len(self.warnings)}")
        self.debug(f"Elapsed: {self.elapsed_time[:-4]}")

    @classmethod
    def from_config(cls, config) -> "WranglerLogger":
        """Create a WranglerLogger from a WranglerConfig."""
        return cls(
            verbose=config.verbose,
            debug_mode=config.debug,
            log_times=config.log_times,
            color=config.color,
            log_file=config.log_file,
        )


_LOGGER = None


def get_configured_logger(wrangler_config=None) -> WranglerLogger:
    """Return a logger associated with the current command line arguments
    which define things like debugging, verbosity, colorization, and log times.
    """
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = WranglerLogger.from_config(
            wrangler_config or config.get_args_config()
        )
    return _LOGGER


def reset_logger() -> None:
    """Forget the configured logger so the next fetch reconfigures logging."""
    global _LOGGER
    if _LOGGER is not None:
        _LOGGER.close()
    _LOGGER = None


class WranglerLoggable:
    """Mixin to add standard logging support based on Wrangler config."""

    def __init__(self):
        super().__init__()
        self.logger = get_configured_logger(getattr(self, "config", None))
