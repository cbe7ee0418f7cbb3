"""
Authentication & Authorization Guard Decorators.

``requires_auth`` gates write actions behind an authenticated session;
``admin_required`` / ``super_admin_required`` gate administrative actions
behind an :class:`~primariga.services.admin_guard.AdminGuard` role check.

Usage::

    from primariga.guards import admin_required, requires_auth

    auth_guard = requires_auth(store)

    @auth_guard
    def like_book(book_id: str) -> Result[None, AppError]:
        ...

    @admin_required(services.admin_guard)
    def hide_book(book_id: str) -> Result[None, AppError]:
        ...
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from primariga.core.errors import AppError, AuthenticationError
from primariga.core.result import Result, failure
from primariga.services.admin_guard import LOGIN_REQUIRED_MESSAGE, AdminGuard
from primariga.services.session_store import SessionStore

P = ParamSpec("P")
T = TypeVar("T")


def requires_auth(
    store: SessionStore,
) -> Callable[[Callable[P, Result[T, AppError]]], Callable[P, Result[T, AppError]]]:
    """Return a decorator that enforces authentication via *store*.

    The returned decorator checks ``store.requires_auth()`` before every
    call.  While anonymous, the wrapped function is not invoked and a
    ``Failure(AuthenticationError)`` is returned instead.

    Args:
        store: The session store holding the current auth state.

    Returns:
        A decorator suitable for wrapping ``Result``-returning actions.
    """

    def decorator(
        func: Callable[P, Result[T, AppError]],
    ) -> Callable[P, Result[T, AppError]]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, AppError]:
            if store.requires_auth():
                return failure(AuthenticationError(LOGIN_REQUIRED_MESSAGE))
            return func(*args, **kwargs)

        return wrapper

    return decorator


def _role_required(
    check: Callable[[], Result[None, AppError]],
) -> Callable[[Callable[P, Result[T, AppError]]], Callable[P, Result[T, AppError]]]:
    def decorator(
        func: Callable[P, Result[T, AppError]],
    ) -> Callable[P, Result[T, AppError]]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, AppError]:
            verdict = check()
            if verdict.is_failure():
                return failure(verdict.error)
            return func(*args, **kwargs)

        return wrapper

    return decorator


def admin_required(
    guard: AdminGuard,
) -> Callable[[Callable[P, Result[T, AppError]]], Callable[P, Result[T, AppError]]]:
    """Decorator: run the action only for ``admin`` / ``super_admin``."""
    return _role_required(guard.require_admin)


def super_admin_required(
    guard: AdminGuard,
) -> Callable[[Callable[P, Result[T, AppError]]], Callable[P, Result[T, AppError]]]:
    return _role_required(guard.require_super_admin)
