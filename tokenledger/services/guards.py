"""Authorization gate and reentrancy guard shared by both ledgers."""

import functools
from collections.abc import Callable
from typing import Concatenate, ParamSpec, Protocol, TypeVar

import structlog

from tokenledger.services.errors import ReentrantCall, Unauthorized

logger = structlog.get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class AuthorizationGate:
    """Single designated controller, fixed at construction."""

    def __init__(self, controller: str) -> None:
        if not controller:
            raise ValueError("controller must be a non-empty account id")
        self.controller: str = controller

    def is_controller(self, caller: str) -> bool:
        return caller == self.controller

    def require_controller(self, caller: str) -> None:
        if not self.is_controller(caller):
            logger.warning("Rejected non-controller call", caller=caller)
            raise Unauthorized(f"{caller!r} is not the controller")


class _Guarded(Protocol):
    _entered: bool


G = TypeVar("G", bound=_Guarded)


def non_reentrant(method: Callable[Concatenate[G, P], R]) -> Callable[Concatenate[G, P], R]:
    """Reject a call into any guarded method of the same instance while one is running."""

    @functools.wraps(method)
    def wrapper(self: G, *args: P.args, **kwargs: P.kwargs) -> R:
        if self._entered:
            raise ReentrantCall(f"{type(self).__name__}.{method.__name__} re-entered")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper
