"""
trainfeed errors.

Transient read failures never show up here: they are retried inside
:class:`~trainfeed.reader.FileTimeoutReader`.  Everything below is fatal for
the call that raised it.
"""

from __future__ import annotations

from typing import Optional


class GeneratorError(RuntimeError):
    """Base class for all trainfeed failures."""


class FileUnavailable(GeneratorError):
    """A file could not be read within its retry budget.

    Parameters
    ----------
    file_id : str
        Path of the file that failed.
    cause : Exception or None
        The last error seen while trying to read it.
    """

    def __init__(self, file_id: str, cause: Optional[BaseException] = None) -> None:
        self.file_id = file_id
        self.cause = cause
        msg = f"file {file_id!r} could not be read"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class MalformedFile(GeneratorError):
    """A file reports no samples or no feature dimensions."""

    def __init__(self, file_id: str, reason: str = "no features filled") -> None:
        self.file_id = file_id
        self.reason = reason
        super().__init__(f"{reason} in {file_id!r}")


class ExhaustedFileList(GeneratorError):
    """More samples were requested than the file list can deliver."""


class InsufficientData(ExhaustedFileList):
    """``get_batch`` was called more often than the epoch supports."""
