"""Logger adapter for debug messages that are costly to build.

Pass a zero-argument callable instead of a string; it is only called when
the record will actually be emitted::

    lazy = get_lazy_logger(__name__)
    lazy.debug(lambda: f"scan batch {', '.join(map(str, ids))}")
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Resolves callable messages and args after the level check.

    Context bound at construction is merged under any call-site ``extra``.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        if self.extra:
            kwargs["extra"] = self.extra | kwargs.get("extra", {})
        return msg, kwargs

    # debug/info/warning/error/exception on LoggerAdapter all route through log()
    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        resolved = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg() if callable(msg) else msg, *resolved, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    return LazyLoggerAdapter(logging.getLogger(name), context)
