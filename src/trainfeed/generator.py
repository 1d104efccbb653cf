"""
trainfeed generator: fixed-size batches from a shuffled list of files.

:class:`BatchGenerator` is the user-facing class.  It counts the samples
in every file once, reshuffles the file order at the start of every epoch,
and hands out batches of exactly ``batch_size`` samples while the next file
is being read in the background.
"""

from __future__ import annotations

import logging
import os
import warnings
import zipfile
from typing import Any, Dict, Iterable, Iterator, List, Optional, Type

from trainfeed.config import GeneratorConfig, is_positive_int
from trainfeed.errors import (
    ExhaustedFileList,
    FileUnavailable,
    GeneratorError,
    InsufficientData,
    MalformedFile,
)
from trainfeed.prefetch import PrefetchPipeline
from trainfeed.reader import FileTimeoutReader
from trainfeed.samples import NpzSampleBlock, PathLike, SampleBlock
from trainfeed.shuffle import EpochShuffler

logger = logging.getLogger(__name__)


class BatchGenerator:
    """Epoch-based, prefetching batch generator.

    Parameters
    ----------
    batch_size : int
        Samples per batch.  Samples left over at the end of an epoch
        (``n_total % batch_size``) are never emitted.
    file_timeout : int
        Read attempts per file before :class:`~trainfeed.errors.FileUnavailable`.
    retry_interval : float
        Seconds between two read attempts.
    threading : bool
        Read the next file in a background thread.
    debug : bool
        Log buffer state for every batch (at DEBUG level).
    seed : int
        First value of the epoch shuffle counter.
    block_type : type
        :class:`~trainfeed.samples.SampleBlock` subclass matching the file format.

    Examples
    --------
    >>> gen = BatchGenerator(batch_size=64)
    >>> gen.set_file_list(["part0.npz", "part1.npz"])
    >>> for epoch in range(10):
    ...     gen.prepare_next_epoch()
    ...     for _ in range(gen.get_n_batches()):
    ...         train(gen.get_batch())
    >>> gen.end()
    """

    def __init__(
        self,
        batch_size: int = 32,
        file_timeout: int = 10,
        retry_interval: float = 1.0,
        threading: bool = True,
        debug: bool = False,
        seed: int = 1,
        block_type: Type[SampleBlock] = NpzSampleBlock,
    ) -> None:
        GeneratorConfig(
            batch_size=batch_size,
            file_timeout=file_timeout,
            retry_interval=retry_interval,
            threading=threading,
            debug=debug,
            seed=seed,
        ).validate()

        self.debug = debug
        self.block_type = block_type

        self._orig_files: List[str] = []
        self._shuffled_files: List[str] = []
        self._batch_size = batch_size
        self._n_total = 0
        self._n_batches = 0
        self._samples_processed = 0
        self._last_batch_size = 0
        self._epoch_ready = False

        self.shuffler = EpochShuffler(seed)
        self.reader = FileTimeoutReader(retry_budget=file_timeout, interval=retry_interval)
        self.pipeline = PrefetchPipeline(self.reader, block_type=block_type, threading=threading)

    @classmethod
    def from_config(
        cls,
        files: Optional[Iterable[PathLike]] = None,
        config: Optional[GeneratorConfig] = None,
        **kwargs: Any,
    ) -> BatchGenerator:
        """Build a generator from a :class:`~trainfeed.config.GeneratorConfig`."""
        config = config or GeneratorConfig()
        gen = cls(**config.to_dict(), **kwargs)
        if files is not None:
            gen.set_file_list(files)
        return gen

    # -- configuration ------------------------------------------------------

    def set_file_list(self, files: Iterable[PathLike]) -> None:
        """Set the input files and count their samples.

        Only shape metadata is read.  Raises ``MalformedFile`` for a file
        that cannot be parsed or has no samples or feature dimensions, and
        ``FileUnavailable`` for one that cannot be opened.  On error the
        previous file list and counts are kept.
        """
        paths = [os.fspath(f) for f in files]
        total = self._read_n_total(paths)
        self._orig_files = paths
        self._shuffled_files = list(paths)
        self._epoch_ready = False
        self._n_total = total
        logger.info("%d samples in %d files", total, len(paths))
        self._update_n_batches(stacklevel=2)

    def set_batch_size(self, n: int) -> None:
        if not is_positive_int(n):
            raise ValueError(f"batch size must be a positive integer, got {n!r}")
        self._batch_size = n
        self._update_n_batches(stacklevel=2)

    def set_file_timeout(self, seconds: int) -> None:
        """Number of read attempts (one ``retry_interval`` apart) per file."""
        if not is_positive_int(seconds):
            raise ValueError(f"file timeout must be a positive integer, got {seconds!r}")
        self.reader.retry_budget = seconds

    def enable_threading(self, enabled: bool) -> None:
        self.pipeline.threading = enabled

    def get_n_total(self) -> int:
        return self._n_total

    def get_n_batches(self) -> int:
        return self._n_batches

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def samples_processed(self) -> int:
        return self._samples_processed

    @property
    def files(self) -> List[str]:
        return list(self._orig_files)

    @property
    def shuffled_files(self) -> List[str]:
        """File order of the current epoch."""
        return list(self._shuffled_files)

    # -- epoch management ---------------------------------------------------

    def prepare_next_epoch(self) -> None:
        """Reshuffle the files and start reading the first one.

        Must be called before the first :meth:`get_batch` of every epoch.
        """
        self._epoch_ready = False
        self._samples_processed = 0
        self._last_batch_size = 0
        self._shuffled_files = self.shuffler.shuffle(self._orig_files)
        self.pipeline.begin_epoch(self._shuffled_files, self._n_total)
        self._epoch_ready = True
        logger.info(
            "epoch prepared: %d files, %d samples, %d batches of %d",
            len(self._shuffled_files), self._n_total, self._n_batches, self._batch_size,
        )

    def get_batch(self) -> SampleBlock:
        """Return the next batch of exactly ``batch_size`` samples.

        Raises
        ------
        InsufficientData
            More batches were requested than the epoch holds.
        FileUnavailable
            The next file could not be read within its retry budget.
        MalformedFile
            The next file has a different array layout from the ones before.
        """
        if not self._epoch_ready:
            raise GeneratorError("prepare_next_epoch() must be called before get_batch()")
        try:
            buffered = self.pipeline.ensure_available(self._batch_size, self._samples_processed)
        except ExhaustedFileList as exc:
            raise InsufficientData(str(exc)) from exc

        if self.debug:
            logger.debug(
                "provided batch %d-%d, elements in buffer: %d, next file %d of %d",
                self._samples_processed, self._samples_processed + self._batch_size,
                buffered, self.pipeline.cursor, len(self._shuffled_files),
            )
        batch = self.pipeline.take_batch(self._batch_size)
        self._samples_processed += self._batch_size
        self._last_batch_size = self._batch_size
        return batch

    def last_batch(self) -> bool:
        """True once the batch just returned is the last one that fits."""
        return self._samples_processed >= self._n_total - self._last_batch_size

    def end(self) -> None:
        """Join the background reader and drop all buffers.  Idempotent."""
        self.pipeline.close()
        self._epoch_ready = False

    # -- iteration ----------------------------------------------------------

    def __len__(self) -> int:
        """Number of batches per epoch."""
        return self._n_batches

    def __iter__(self) -> Iterator[SampleBlock]:
        """Run one full epoch."""
        self.prepare_next_epoch()
        for _ in range(self._n_batches):
            yield self.get_batch()

    def __enter__(self) -> BatchGenerator:
        return self

    def __exit__(self, *_: object) -> None:
        self.end()

    def __del__(self) -> None:
        if hasattr(self, "pipeline"):
            self.end()

    # -- checkpointing ------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        """Return what is needed to continue the same shuffle sequence."""
        return {
            "files": list(self._orig_files),
            "batch_size": self._batch_size,
            "file_timeout": self.reader.retry_budget,
            "retry_interval": self.reader.interval,
            "threading": self.pipeline.threading,
            "shuffle": self.shuffler.get_state(),
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], **kwargs: Any) -> BatchGenerator:
        """Restore a generator; its next epoch uses the next shuffle in sequence."""
        gen = cls(
            batch_size=state["batch_size"],
            file_timeout=state["file_timeout"],
            retry_interval=state["retry_interval"],
            threading=state["threading"],
            **kwargs,
        )
        gen.shuffler = EpochShuffler.from_state(state["shuffle"])
        gen.set_file_list(state["files"])
        return gen

    # -- internal -----------------------------------------------------------

    def _read_n_total(self, paths: List[str]) -> int:
        total = 0
        for path in paths:
            try:
                features, _, _ = self.block_type.read_shapes_from_file(path)
            except OSError as exc:
                raise FileUnavailable(path, exc) from exc
            except (ValueError, zipfile.BadZipFile) as exc:
                raise MalformedFile(path, str(exc)) from exc
            # First dimension is always the sample count; features must be filled.
            if not features or len(features[0]) < 1:
                raise MalformedFile(path, "no features filled")
            if features[0][0] == 0:
                raise MalformedFile(path, "no samples")
            total += features[0][0]
        return total

    def _update_n_batches(self, stacklevel: int = 2) -> None:
        # stacklevel counts from the calling method, as if it called warn itself.
        self._n_batches = self._n_total // self._batch_size
        dropped = self._n_total % self._batch_size
        if self._n_total and dropped:
            warnings.warn(
                f"{dropped} of {self._n_total} samples do not fill a batch of "
                f"{self._batch_size} and are skipped every epoch",
                UserWarning,
                stacklevel=stacklevel + 1,
            )
