"""Console logging for safe-coordinator."""

import logging
import os
import sys
from collections.abc import Iterable

# Define TRACE level (lower than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

REDACTED = "***redacted***"

NOISY_LOGGERS = ("web3", "urllib3", "backoff")


class ColoredFormatter(logging.Formatter):
    """Colored log formatter using ANSI escape codes."""

    COLORS = {
        "TRACE": "\033[90m",  # Dark gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
            )
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class SecretRedactingFilter(logging.Filter):
    """Masks configured secret values (private keys, API tokens) in log messages."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        variants: set[str] = set()
        for secret in secrets:
            if not secret:
                continue
            bare = secret.removeprefix("0x")
            variants.update({secret, bare, bare.lower()})
        # Longest first so a prefixed key is masked as a whole
        self.secrets = sorted(variants, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _resolve_level(level_name: str) -> int:
    if level_name == "TRACE":
        return TRACE
    return getattr(logging, level_name, logging.INFO)


def setup_logging(log_level: str | None = None, secrets: Iterable[str] = ()) -> None:
    """Configure logging for the application.

    Uses ``log_level`` when given, otherwise the LOG_LEVEL environment
    variable (defaults to INFO). Any value in ``secrets`` is masked before a
    record reaches the console. Python warnings, including
    ``ValidationWarning``, are routed through the ``py.warnings`` logger.

    At DEBUG the web3, urllib3 and backoff loggers stay at WARNING; TRACE
    shows everything.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = _resolve_level(level_name)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(SecretRedactingFilter(secrets))

    logging.basicConfig(level=level, handlers=[handler], force=True)
    logging.captureWarnings(True)

    if level_name == "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    elif level_name == "TRACE":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(TRACE)
