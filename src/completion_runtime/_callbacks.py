"""Shared callback-firing utility used by the chunk buffer and sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any


def fire_callbacks(
    callbacks: Sequence[Callable[..., Any] | None],
    *args: Any,
    logger: logging.Logger | None = None,
    log_level: int = logging.WARNING,
    **kwargs: Any,
) -> None:
    """Call every callback with the given arguments, swallowing exceptions.

    A caller-supplied notifier must never break persistence, so failures
    are logged and otherwise ignored.

    Parameters:
        callbacks: Callables to invoke; ``None`` entries are skipped.
        *args: Positional arguments forwarded to each callback.
        logger: Optional logger for recording failures.
        log_level: Log level for failure messages (default ``WARNING``).
        **kwargs: Keyword arguments forwarded to each callback.
    """
    for cb in callbacks:
        if cb is None:
            continue
        try:
            cb(*args, **kwargs)
        except Exception:
            if logger:
                logger.log(log_level, "Callback %r failed", cb, exc_info=True)
