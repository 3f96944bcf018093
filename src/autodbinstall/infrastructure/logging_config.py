"""
Logging configuration module.

Coloured console output, optional plain-text file output, and a filter that
masks anything that looks like a secret installer argument.
"""

import logging
import re
import sys
from pathlib import Path


class Colors:
    """ANSI escape sequences for terminal colors."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    WHITE = "\033[37m"
    CYAN = "\033[36m"
    YELLOW = "\033[33m"
    BRIGHT_RED = "\033[91m"

    BG_RED = "\033[41m"


# /SAPWD="..." and /SQLSVCPASSWORD=... style fragments
SECRET_PATTERN = re.compile(r'(/[A-Z]*(?:PWD|PASSWORD)=)("[^"]*"|\S+)', re.IGNORECASE)


def mask_secrets(text: str) -> str:
    """Replace the value of any password argument with asterisks."""
    return SECRET_PATTERN.sub(r"\1********", text)


class SecretMaskingFilter(logging.Filter):
    """Rewrites records so password arguments never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colours the level name.

    Colors:
        DEBUG    - Dim
        INFO     - Cyan
        WARNING  - Yellow
        ERROR    - Red
        CRITICAL - Bold on red background
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.CYAN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.BRIGHT_RED,
        logging.CRITICAL: Colors.BOLD + Colors.WHITE + Colors.BG_RED,
    }

    def __init__(self, fmt: str, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        levelname, name = record.levelname, record.name
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        record.levelname = f"{color}{record.levelname:8}{Colors.RESET}"
        record.name = f"{Colors.DIM}{record.name}{Colors.RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers see the uncoloured record
            record.levelname, record.name = levelname, name


class PlainFormatter(logging.Formatter):
    """Non-colored formatter for file output."""


def _enable_windows_ansi():
    """Enable ANSI escape sequences on Windows consoles."""
    if sys.platform != "win32":
        return
    try:
        import ctypes
        kernel32 = ctypes.windll.kernel32
        # ENABLE_PROCESSED_OUTPUT | ENABLE_WRAP_AT_EOL_OUTPUT | ENABLE_VIRTUAL_TERMINAL_PROCESSING
        kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
    except (AttributeError, OSError):
        pass  # older consoles just show raw codes


def setup_logging(level: int = logging.INFO, log_file: str | None = None, use_colors: bool = True):
    """
    Configure application-wide logging.

    Args:
        level: Console logging level
        log_file: Optional path to a log file (always DEBUG)
        use_colors: Colour the console output
    """
    _enable_windows_ansi()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(
        fmt='[%(asctime)s] %(levelname)s [%(name)s] %(message)s',
        datefmt='%H:%M:%S',
        use_colors=use_colors,
    ))
    console_handler.setLevel(level)
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setFormatter(PlainFormatter(
            fmt='[%(asctime)s] %(levelname)-8s [%(threadName)s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    secret_filter = SecretMaskingFilter()
    for handler in handlers:
        handler.addFilter(secret_filter)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)

    # Transport libraries are chatty at DEBUG
    for noisy in ('winrm', 'urllib3', 'requests_ntlm', 'requests_credssp', 'spnego'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("AutoDBInstall Logging Initialized")
    logger.debug("Log level: %s", logging.getLevelName(level))
    if log_file:
        logger.debug("Log file: %s", log_file)
    logger.info("=" * 50)
