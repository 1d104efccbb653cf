"""
trainfeed: epoch-based, prefetching batch generator

Turns an ordered list of sample files into a continuous stream of
fixed-size batches.  The file order is reshuffled every epoch from a
deterministic seed sequence, the next file is read in a background thread
while the current one is consumed, and transient read failures are retried
before anything is reported.

Quick Start
-----------
    >>> from trainfeed import BatchGenerator
    >>> gen = BatchGenerator(batch_size=64)
    >>> gen.set_file_list(["part0.npz", "part1.npz", "part2.npz"])
    >>> for epoch in range(100):
    ...     gen.prepare_next_epoch()
    ...     for _ in range(gen.get_n_batches()):
    ...         batch = gen.get_batch()
    ...         train(batch.features, batch.targets)
    >>> gen.end()

or, as an iterable that runs one epoch per ``for`` loop:

    >>> with BatchGenerator(batch_size=64) as gen:
    ...     gen.set_file_list(files)
    ...     for epoch in range(100):
    ...         for batch in gen:
    ...             train(batch.features, batch.targets)
"""

__version__ = "0.1.0"

# Generator ---------------------------------------------------------------
from trainfeed.generator import BatchGenerator
from trainfeed.config import GeneratorConfig

# Pipeline pieces ---------------------------------------------------------
from trainfeed.prefetch import PrefetchPipeline
from trainfeed.reader import FileTimeoutReader, with_retries
from trainfeed.shuffle import EpochShuffler, SplitMix64

# Sample containers -------------------------------------------------------
from trainfeed.samples import (
    SampleBlock,
    NpzSampleBlock,
    HDF5SampleBlock,
    file_is_readable,
)

# Errors ------------------------------------------------------------------
from trainfeed.errors import (
    GeneratorError,
    FileUnavailable,
    MalformedFile,
    ExhaustedFileList,
    InsufficientData,
)

__all__ = [
    # Generator
    "BatchGenerator",
    "GeneratorConfig",
    # Pipeline
    "PrefetchPipeline",
    "FileTimeoutReader",
    "with_retries",
    "EpochShuffler",
    "SplitMix64",
    # Samples
    "SampleBlock",
    "NpzSampleBlock",
    "HDF5SampleBlock",
    "file_is_readable",
    # Errors
    "GeneratorError",
    "FileUnavailable",
    "MalformedFile",
    "ExhaustedFileList",
    "InsufficientData",
]
