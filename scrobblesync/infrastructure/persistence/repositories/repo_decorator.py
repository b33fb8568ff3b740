"""Repository decorator for standardizing DB operations.

Wraps repository methods with structured logging, timing and error
classification. Errors are logged and re-raised unchanged.
"""

import asyncio
from collections.abc import Callable, Coroutine
import functools
import time
from typing import Any, ParamSpec, TypeVar

from sqlalchemy.exc import (
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)

from scrobblesync.config import get_logger

# Type variables for generic function signatures
P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__).bind(service="database")


def db_operation(operation_name: str | None = None):
    """Decorate repository methods with consistent logging and error handling.

    Args:
        operation_name: Optional name for the operation (defaults to function name)

    Example:
        @db_operation("find_submitted")
        async def find_submitted(self, keys: list[str]) -> set[str]:
            ...
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]],
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        func_name = operation_name or func.__name__

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(
                f"db_operation can only be used with async functions, but {func_name} is not async",
            )

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            repo_name = args[0].__class__.__name__ if args else "Repository"
            context = _build_log_context(kwargs)

            def elapsed() -> float:
                return (time.perf_counter() - start_time) * 1000

            try:
                logger.trace(
                    f"DB operation starting: {repo_name}.{func_name}",
                    operation=func_name,
                    **context,
                )
                result = await func(*args, **kwargs)
                logger.trace(
                    f"DB operation completed: {repo_name}.{func_name}",
                    operation=func_name,
                    exec_time_ms=elapsed(),
                    **context,
                )
                return result

            except IntegrityError as e:
                logger.warning(
                    f"DB integrity error: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise

            except OperationalError as e:
                logger.error(
                    f"DB operational error: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise

            except SQLAlchemyError as e:
                logger.error(
                    f"SQLAlchemy error: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise

            except Exception as e:
                logger.exception(
                    f"Unhandled exception in {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise

        return wrapper

    return decorator


def _build_log_context(kwargs: dict[str, Any]) -> dict[str, Any]:
    """Loggable scalar values from the call's keyword arguments."""
    return {
        k: v
        for k, v in kwargs.items()
        if not k.startswith("_") and isinstance(v, int | float | str | bool)
    }
