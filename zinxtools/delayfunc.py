"""A callback bound to its arguments, fired when a timer expires."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

logger = logging.getLogger(__name__)


class DelayFunc:
    """A function and the arguments it is to be called with later."""

    def __init__(self, func: Callable[..., Any], args: Iterable[Any] = ()) -> None:
        self.func = func
        self.args = tuple(args)

    def __str__(self) -> str:
        name = getattr(self.func, "__name__", type(self.func).__name__)
        return f"{{DelayFun:{name}, args:{list(self.args)!r}}}"

    def __repr__(self) -> str:
        return f"DelayFunc({self.func!r}, {self.args!r})"

    def call(self) -> None:
        """Call the function; an exception it raises is logged, not propagated."""
        try:
            self.func(*self.args)
        except Exception as err:  # noqa: BLE001 - a failing callback must not kill its caller
            logger.error("%s Call err: %r", self, err)