"""Generator configuration."""

from __future__ import annotations

import numbers
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict


@dataclass
class GeneratorConfig:
    """Settings for :class:`~trainfeed.generator.BatchGenerator`.

    Parameters
    ----------
    batch_size : int
        Samples per batch.
    file_timeout : int
        Read attempts per file before giving up (one ``retry_interval`` apart).
    retry_interval : float
        Seconds to wait between two read attempts.
    threading : bool
        Load the next file in a background thread.
    debug : bool
        Log buffer state for every batch.
    seed : int
        Starting value of the epoch shuffle counter.
    """

    batch_size: int = 32
    file_timeout: int = 10
    retry_interval: float = 1.0
    threading: bool = True
    debug: bool = False
    seed: int = 1

    def validate(self) -> None:
        if not is_positive_int(self.batch_size):
            raise ValueError(f"batch_size must be a positive integer, got {self.batch_size!r}")
        if not is_positive_int(self.file_timeout):
            raise ValueError(f"file_timeout must be a positive integer, got {self.file_timeout!r}")
        if self.retry_interval < 0:
            raise ValueError(f"retry_interval must be >= 0, got {self.retry_interval}")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> GeneratorConfig:
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"unknown generator settings: {', '.join(unknown)}")
        config = cls(**values)
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_positive_int(value: Any) -> bool:
    """True for a positive integer; ``bool`` does not count."""
    return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value > 0
