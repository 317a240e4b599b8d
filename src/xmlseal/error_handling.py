"""
Standardized Error Handling for xmlseal
=======================================

This module provides the exception taxonomy and the shared error handling
helpers used by the signer, the verifier, the document codec and the
file-level reader/writer.

Verification failure is not an error: it is reported through the boolean
result of ``verify*``/``read*``. Everything in this module is for the cases
where an operation cannot produce a meaningful answer at all.
"""

import functools
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Type, Union

logger = logging.getLogger(__name__)


class XmlSealError(Exception):
    """Base exception for all xmlseal errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)

        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        logger.error(
            f"xmlseal error: {message}" + (f" ({context_str})" if context_str else "")
        )


class ConfigurationError(XmlSealError):
    """Raised when required configuration (usually key material) is missing or invalid."""

    pass


class MalformedDocumentError(XmlSealError):
    """Raised when markup cannot be parsed or lacks a usable Signature node."""

    pass


class MappingError(XmlSealError):
    """Raised when a value cannot be mapped to or from a markup document."""

    pass


class ArgumentError(XmlSealError):
    """Raised when a required argument is missing or out of range."""

    pass


class StorageError(XmlSealError):
    """Raised when reading or writing a file fails."""

    pass


def with_error_handling(
    error_type: Type[XmlSealError] = XmlSealError,
    context: Optional[Dict[str, Any]] = None,
):
    """
    Decorator converting unexpected exceptions into xmlseal errors.

    Args:
        error_type: Type of XmlSealError to raise
        context: Additional context to include in error
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except XmlSealError:
                raise
            except Exception as e:
                error_context = (context or {}).copy()
                error_context.update(
                    {
                        "function": func.__name__,
                        "original_error": str(e),
                        "original_error_type": type(e).__name__,
                    }
                )

                raise error_type(f"Error in {func.__name__}: {e}", error_context) from e

        return wrapper

    return decorator


@contextmanager
def operation_context(operation: str, **context):
    """
    Context manager logging the start, duration and failure of an operation.

    Exceptions are always re-raised unchanged.

    Args:
        operation: Description of the operation
        **context: Additional context for logging
    """
    logger.debug(f"Starting operation: {operation}", extra=context)
    start_time = time.time()

    try:
        yield
    except XmlSealError:
        logger.debug(f"Operation failed: {operation}", extra=context)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in operation: {operation} - {e}", extra=context)
        raise

    duration = time.time() - start_time
    logger.debug(f"Operation completed: {operation} ({duration:.3f}s)", extra=context)


def validate_file_path(file_path: Union[str, Path], must_exist: bool = False) -> Path:
    """
    Validate and normalize file paths with proper error handling.

    Args:
        file_path: File path to validate
        must_exist: Whether the file must already exist

    Returns:
        Validated Path object

    Raises:
        ArgumentError: If no path was given
        StorageError: If path validation fails
    """
    if file_path is None:
        raise ArgumentError("A file path is required")

    try:
        path = Path(file_path)

        if not path.name:
            raise StorageError(
                "Invalid file path: empty filename", {"file_path": str(file_path)}
            )

        if must_exist and not path.is_file():
            raise StorageError(
                f"Required file does not exist: {path}", {"file_path": str(file_path)}
            )

        if not must_exist:
            path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {path.parent}")

        return path

    except OSError as e:
        raise StorageError(
            f"File system error: {e}",
            {"file_path": str(file_path), "must_exist": must_exist},
        ) from e


def safe_file_operation(
    operation: str, file_path: Path, func: Callable, *args, **kwargs
):
    """
    Perform file operations with proper error handling.

    Args:
        operation: Description of the operation
        file_path: File being operated on
        func: Function to call
        *args, **kwargs: Arguments for the function

    Returns:
        Result of the function call
    """
    with operation_context(operation, file_path=str(file_path)):
        try:
            return func(*args, **kwargs)
        except PermissionError as e:
            raise StorageError(
                f"Permission denied for {operation}: {file_path}",
                {"operation": operation, "file_path": str(file_path)},
            ) from e
        except OSError as e:
            raise StorageError(
                f"File system error during {operation}: {e}",
                {"operation": operation, "file_path": str(file_path)},
            ) from e
