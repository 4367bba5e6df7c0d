"""
Structured logging configuration.
JSON log files through python-json-logger, a plain console stream on stderr,
and masking of secret-looking values on every handler.
"""

import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

JSON_FIELDS = '%(timestamp)s %(levelname)s %(name)s %(message)s'
PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s - %(name)s - %(message)s'


class RedactingFilter(logging.Filter):
    """Mask the values of sensitive keys (password=..., 'token': ...) in log messages."""

    REDACT_PATTERNS = [
        'password',
        'token',
        'secret',
        'api_key',
    ]

    _VALUE_RE = re.compile(
        r"""(?P<key>['"]?(?:%s)['"]?\s*[:=]\s*)(?P<value>'[^']*'|"[^"]*"|[^\s,;}\]]+)"""
        % '|'.join(REDACT_PATTERNS),
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._VALUE_RE.sub(lambda m: f"{m.group('key')}[REDACTED]", message)
        if redacted != message:
            # Message is already formatted
            record.msg = redacted
            record.args = None
        return True


def _attach(root: logging.Logger, handler: logging.Handler, level: int,
            formatter: logging.Formatter, redact: logging.Filter) -> None:
    handler.setLevel(level)
    handler.addFilter(redact)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    json_format: bool = True,
    console_output: bool = True,
) -> Optional[Path]:
    """
    Configure the root logger for the converter.

    Args:
        log_dir: Directory for a timestamped log file (console only if None)
        log_level: Logging level name
        json_format: One JSON object per line in the log file
        console_output: Also log to stderr, keeping stdout for converted output

    Returns:
        Path of the log file, or None without log_dir
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    redact = RedactingFilter()
    log_file = None

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"tabconvert_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

        if json_format:
            formatter = jsonlogger.JsonFormatter(JSON_FIELDS, timestamp=True)
        else:
            formatter = logging.Formatter(PLAIN_FORMAT)
        _attach(root_logger, logging.FileHandler(log_file, encoding='utf-8'),
                level, formatter, redact)

    if console_output:
        _attach(root_logger, logging.StreamHandler(sys.stderr),
                level, logging.Formatter(CONSOLE_FORMAT), redact)

    root_logger.debug(f"Logging initialized: {log_file or 'console only'}")
    return log_file
