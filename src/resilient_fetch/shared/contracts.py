"""
Contract Programming implementation with preconditions.

This module provides the precondition decorator and predicates used to
validate arguments at the public entry points of the fetch client.
"""

import functools
import inspect
from typing import Any, Callable, TypeVar, Union
import structlog

from resilient_fetch.shared.exceptions import PreconditionError

logger = structlog.get_logger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def require(condition: Union[bool, Callable[..., bool]], message: str = "") -> Callable[[F], F]:
    """
    Precondition decorator - validates input parameters.

    The condition is called with the bound arguments of the decorated
    function, defaults applied, so it may name any parameter it needs.
    Works for both plain and ``async def`` functions; for coroutines the
    check runs when the call is made, before the coroutine is awaited.

    Args:
        condition: Boolean expression or callable taking the function arguments
        message: Custom error message for contract violation

    Returns:
        Decorated function with precondition checking

    Raises:
        PreconditionError: If precondition is not met
    """
    def decorator(func: F) -> F:
        sig = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()

            if callable(condition):
                try:
                    result = condition(**bound_args.arguments)
                except Exception as e:
                    logger.error(
                        "Precondition evaluation failed",
                        function=func.__name__,
                        error=str(e)
                    )
                    raise PreconditionError(
                        f"Precondition evaluation error in {func.__name__}: {str(e)}"
                    ) from e
            else:
                result = condition

            if not result:
                error_msg = message or f"Precondition failed in {func.__name__}"
                logger.warning(
                    "Precondition violation",
                    function=func.__name__,
                    message=error_msg
                )
                raise PreconditionError(error_msg)

            return func(*args, **kwargs)

        return wrapper
    return decorator


def positive_int(value: Any) -> bool:
    """Check if value is a positive integer (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def non_negative(value: Union[int, float]) -> bool:
    """Check if value is non-negative."""
    return value >= 0


def non_empty_url(value: Any) -> bool:
    """Check if a request target is non-empty after stripping whitespace."""
    return value is not None and len(str(value).strip()) > 0
