"""
Utility functions for hashing, file I/O, text decoding and timeouts.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any, Awaitable

from .errors import create_timeout_error

logger = logging.getLogger(__name__)


def compute_bytes_hash(data: bytes, algorithm: str = 'sha256') -> str:
    """Compute hash of bytes."""
    hash_func = hashlib.new(algorithm)
    hash_func.update(data)
    return hash_func.hexdigest()


def decode_bytes(data: bytes) -> str:
    """Decode text bytes as UTF-8 (BOM stripped), falling back to latin-1."""
    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.warning("Failed to decode input as UTF-8, trying latin-1")
        return data.decode('latin-1')


def read_text(file_path: Path, encoding: str = 'utf-8-sig') -> str:
    """Read a text file, falling back to latin-1 when it is not UTF-8."""
    try:
        with open(file_path, 'r', encoding=encoding, newline='') as f:
            return f.read()
    except UnicodeDecodeError:
        logger.warning(f"Failed to read {file_path} as UTF-8, trying latin-1")
        with open(file_path, 'r', encoding='latin-1', newline='') as f:
            return f.read()


def safe_write_file(file_path: Path, content: str, encoding: str = 'utf-8') -> None:
    """Safely write to file with directory creation."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding=encoding, newline='') as f:
        f.write(content)
    logger.debug(f"Written to file: {file_path}")


def truncate_string(s: str, max_length: int = 100) -> str:
    """Truncate string for logging/display."""
    if len(s) <= max_length:
        return s
    return s[:max_length - 3] + "..."


async def run_with_timeout(awaitable: Awaitable[Any], seconds: float,
                           operation: str = "Operation") -> Any:
    """
    Await with a time budget.

    Args:
        awaitable: Coroutine or future to run
        seconds: Budget in seconds
        operation: Name used in the error message

    Returns:
        The awaitable's result

    Raises:
        OperationTimeoutError: The budget was exceeded (the task is cancelled)
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        logger.warning(f"{operation} timed out after {seconds}s")
        raise create_timeout_error(operation, seconds) from e
