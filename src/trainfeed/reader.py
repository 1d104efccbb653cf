"""
trainfeed reader: load one file with a bounded retry budget.

Network filesystems occasionally report a file as missing or hand back a
truncated read.  Rather than failing a whole training run on one glitch,
:class:`FileTimeoutReader` retries a fixed number of times, one interval
apart, and only then gives up with :class:`~trainfeed.errors.FileUnavailable`.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from trainfeed.errors import FileUnavailable
from trainfeed.samples import PathLike, SampleBlock, file_is_readable

logger = logging.getLogger(__name__)

R = TypeVar("R")


class _Unreadable(OSError):
    """Raised by a read attempt when the file is missing or not readable."""


def with_retries(
    action: Callable[[], R],
    attempts: int,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    on_error: Optional[Callable[[Exception, int], None]] = None,
) -> R:
    """Call *action* until it succeeds, at most *attempts* times.

    Parameters
    ----------
    action : callable
        Zero-argument callable; any ``Exception`` it raises counts as a
        failed attempt.
    attempts : int
        Maximum number of calls (at least one call is always made).
    interval : float
        Seconds slept between two attempts.  No sleep follows the last one.
    sleep : callable
        Sleep function, replaceable in tests.
    on_error : callable or None
        ``on_error(exc, remaining)`` after every failure.

    Raises
    ------
    Exception
        The error of the final attempt.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return action()
        except Exception as exc:
            remaining = attempts - attempt - 1
            if on_error is not None:
                on_error(exc, remaining)
            if remaining == 0:
                raise
            sleep(interval)
    raise AssertionError("unreachable")


class FileTimeoutReader:
    """Read a file into a :class:`~trainfeed.samples.SampleBlock`, with retries.

    Parameters
    ----------
    retry_budget : int
        Read attempts per file.
    interval : float
        Seconds to wait between attempts.
    sleep : callable or None
        Sleep function; defaults to :func:`time.sleep`.
    """

    def __init__(
        self,
        retry_budget: int = 10,
        interval: float = 1.0,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.retry_budget = retry_budget
        self.interval = interval
        self._sleep = sleep if sleep is not None else time.sleep

    def load(self, path: PathLike, into: SampleBlock) -> None:
        """Parse *path* into *into*.

        On exhaustion *into* is cleared and ``FileUnavailable`` is raised.
        """

        def attempt() -> None:
            if not file_is_readable(path):
                raise _Unreadable(f"{path} does not exist or is not readable")
            into.read_from_file(path)

        def report(exc: Exception, remaining: int) -> None:
            logger.warning(
                "file %s not successfully read: %s; trying %d more time(s)",
                path, exc, remaining,
            )

        try:
            with_retries(
                attempt,
                attempts=self.retry_budget,
                interval=self.interval,
                sleep=self._sleep,
                on_error=report,
            )
        except Exception as exc:
            into.clear()
            logger.error("giving up on %s after %d attempt(s)", path, max(1, self.retry_budget))
            raise FileUnavailable(str(path), exc) from exc
