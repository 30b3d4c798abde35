"""
Middleware chain for spec routes.

Every step is a ``(ctx, next)`` callable. A step proceeds by awaiting
``next()`` and short-circuits by raising; code after ``await next()`` runs
once the rest of the chain has finished.
"""

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from starlette.responses import JSONResponse

from .errors import ConfigError, HTTPError
from .settings import RouterSettings

logger = logging.getLogger(__name__)

Next = Callable[[], Awaitable[None]]
Middleware = Callable[[Any, Next], Any]


def _accepts_next(func: Callable) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True

    positional = 0
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


def as_middleware(func: Callable, role: str = "route handler") -> Middleware:
    """
    Normalize a handler into a ``(ctx, next)`` middleware.

    Handlers taking only ``ctx`` are terminal: the chain does not continue
    past them. Sync and async callables are both accepted.
    """
    if not callable(func):
        raise ConfigError(f"{role} must be callable, got {func!r}")

    if _accepts_next(func):
        return func

    async def terminal(ctx, next):
        result = func(ctx)
        if inspect.isawaitable(result):
            await result

    terminal.__name__ = getattr(func, "__name__", "terminal")
    terminal.__wrapped__ = func
    return terminal


class MiddlewareChain:
    """Compose middleware so each one can await the rest of the chain."""

    def __init__(self, middleware: Optional[Iterable[Middleware]] = None):
        self.middleware: List[Middleware] = list(middleware or [])

    def add_middleware(self, middleware: Middleware) -> "MiddlewareChain":
        """Add middleware to chain."""
        self.middleware.append(middleware)
        return self

    def __len__(self) -> int:
        return len(self.middleware)

    async def __call__(self, ctx: Any, next: Optional[Next] = None):
        """Run the chain for one request."""
        index = -1

        async def dispatch(i: int):
            nonlocal index
            if i <= index:
                raise RuntimeError("next() called multiple times")
            index = i

            if i < len(self.middleware):
                fn = self.middleware[i]
            else:
                fn = next
            if fn is None:
                return

            if fn is next:
                result = fn()
            else:
                result = fn(ctx, lambda: dispatch(i + 1))
            if inspect.isawaitable(result):
                await result

        await dispatch(0)


def error_response(error: Exception, settings: RouterSettings) -> JSONResponse:
    """Render a terminal error in the standard error envelope."""
    if isinstance(error, HTTPError):
        return JSONResponse(
            status_code=error.status,
            content=error.to_dict(include_details=settings.expose_error_details),
        )

    logger.exception(f"Unhandled error: {str(error)}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error_code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": str(error) if settings.debug else "An unexpected error occurred",
            "timestamp": datetime.now().isoformat(),
        },
    )
