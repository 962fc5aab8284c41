"""Decorators for logging, error normalization and performance monitoring."""
import asyncio
import logging
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from vidtransfer.core.exceptions import (
    ErrorCategory,
    ErrorSeverity,
    TransferException,
)
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

AsyncF = TypeVar('AsyncF', bound=Callable[..., Awaitable[Any]])


def _truncate(value: Any, limit: int = 200) -> str:
    text = str(value)
    return text[:limit] + "..." if len(text) > limit else text


def async_exception_handler(
    exception_type: type = Exception,
    default_message: str = "Async operation failed",
    log_error: bool = True,
    reraise: bool = True,
    custom_handler: Optional[Callable[[Exception], Any]] = None
):
    """
    Exception handling decorator for coroutines.

    Application exceptions pass through unchanged. Any other error that is not
    an instance of ``exception_type`` is wrapped in a ``TransferException`` so
    callers only ever see the application taxonomy.

    Args:
        exception_type: Exception type that is re-raised as is.
        default_message: Message for wrapped errors.
        log_error: Whether to log the error automatically.
        reraise: Whether to re-raise; when False the wrapper returns None.
        custom_handler: Optional sync or async callback whose return value replaces the result.
    """

    def decorator(func: AsyncF) -> AsyncF:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if log_error:
                    if isinstance(e, TransferException):
                        logger.error(
                            f"Async function {func.__name__} failed: {e.message}",
                            extra={"error_details": e.to_dict()}
                        )
                    else:
                        logger.error(
                            f"Async function {func.__name__} failed: {str(e)}",
                            exc_info=True
                        )

                if custom_handler:
                    if asyncio.iscoroutinefunction(custom_handler):
                        return await custom_handler(e)
                    return custom_handler(e)

                if not isinstance(e, exception_type) and not isinstance(e, TransferException):
                    raise TransferException(
                        message=f"{default_message}: {e}",
                        error_code="ASYNC_EXECUTION_ERROR",
                        category=ErrorCategory.SYSTEM,
                        severity=ErrorSeverity.MEDIUM,
                        original_error=e
                    ) from e

                if reraise:
                    raise
                return None

        return wrapper  # type: ignore

    # Support decorator usage without parentheses while avoiding type objects
    if callable(exception_type) and not isinstance(exception_type, type):
        func = exception_type
        exception_type = Exception
        return decorator(func)  # type: ignore

    return decorator


def async_performance_monitor(
    operation_name: Optional[str] = None,
    log_slow_operations: bool = True,
    slow_threshold: float = 1.0,
    include_args: bool = False,
    include_result: bool = False
):
    """
    Decorator for measuring coroutine latency and flagging slow calls.

    Args:
        operation_name: Custom label for the monitored operation.
        log_slow_operations: Emit warnings when threshold is exceeded.
        slow_threshold: Seconds beyond which the call is considered slow.
        include_args: Attach arguments to the log payload.
        include_result: Attach return value to the log payload.
    """

    def decorator(func: AsyncF) -> AsyncF:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            op_name = operation_name or f"{func.__module__}.{func.__name__}"
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                execution_time = time.perf_counter() - start_time
                logger.error(
                    f"Async operation failed: {op_name} in {execution_time:.2f}s: {e}",
                    extra={"error": str(e), "execution_time": execution_time}
                )
                raise

            execution_time = time.perf_counter() - start_time
            log_info = {
                "operation": op_name,
                "execution_time": round(execution_time, 4),
                "status": "success"
            }

            if include_args:
                log_info["args"] = _truncate(args)
                log_info["kwargs"] = _truncate(kwargs)

            if include_result:
                log_info["result"] = _truncate(result)

            if log_slow_operations and execution_time > slow_threshold:
                logger.warning(f"Slow async operation detected: {log_info}")
            else:
                logger.debug(f"Async operation completed: {log_info}")

            return result

        return wrapper  # type: ignore

    return decorator
