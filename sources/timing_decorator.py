# timing_decorator.py
import functools
import inspect
import time
from typing import Callable, Any, Optional, TypeVar, cast

from app_logger import get_logger

F = TypeVar("F", bound=Callable[..., Any])

timing_log = get_logger("timing")


def timed(label: Optional[str] = None) -> Callable[[F], F]:
    """
    Decorator that measures execution time and logs it at DEBUG level.
    Works on plain functions and on coroutine functions.
    """
    def decorator(func: F) -> F:
        tag = label or func.__qualname__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    timing_log.debug("[%s] took %.4f s", tag, time.perf_counter() - start)
            return cast(F, async_wrapper)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                timing_log.debug("[%s] took %.4f s", tag, time.perf_counter() - start)
        return cast(F, wrapper)
    return decorator
