"""
Result wrapper for cart and order mutations.

Mutations decorated with ``action`` never raise to their caller: failures come
back as ``ActionResult(success=False, message=...)``. ``RedirectRequired`` is
re-raised unchanged so the HTTP layer can navigate.
"""
import logging
from functools import wraps
from typing import Callable

from storefront.exceptions import RedirectRequired, StorefrontError
from storefront.models import ActionResult

logger = logging.getLogger(__name__)


def failure(error: Exception, operation: str) -> ActionResult:
    """Convert an exception raised by a mutation into a failed result"""
    if isinstance(error, StorefrontError):
        logger.info(f"{operation} failed: {error.code}", extra={"error_code": error.code})
        return ActionResult(success=False, message=error.message)
    logger.error(f"Unexpected error in {operation}: {type(error).__name__}: {error}", exc_info=True)
    return ActionResult(success=False, message=str(error) or "Operation failed")


def action(fn: Callable[..., ActionResult]) -> Callable[..., ActionResult]:
    @wraps(fn)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return fn(*args, **kwargs)
        except RedirectRequired:
            raise
        except Exception as e:
            return failure(e, fn.__name__)
    return wrapper
