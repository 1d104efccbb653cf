"""
trainfeed prefetch: one-file-ahead background loading.

The pipeline keeps two buffers.  ``store`` holds samples ready for
consumption and is only ever touched by the caller's thread.  ``staging``
receives the file being loaded and is only touched by the worker while a
load is in flight.  Joining the load (``Future.result()``) hands
``staging`` back to the caller, which moves its samples into ``store``.
No locks are needed because the two sides never share a buffer at the
same time.

At most one load is outstanding, so memory is bounded by two files plus
the remainder of the previous batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional, Sequence, Type

from trainfeed.errors import ExhaustedFileList, FileUnavailable, MalformedFile
from trainfeed.reader import FileTimeoutReader
from trainfeed.samples import NpzSampleBlock, SampleBlock

logger = logging.getLogger(__name__)


class PrefetchPipeline:
    """Double-buffered loader with a single background worker.

    Parameters
    ----------
    reader : FileTimeoutReader
        Loads one file into a block, with retries.
    block_type : type
        :class:`~trainfeed.samples.SampleBlock` subclass for both buffers.
    threading : bool
        Load in a background thread.  When ``False`` every load runs inline
        at the point it would have been scheduled; the protocol is the same.
    """

    def __init__(
        self,
        reader: FileTimeoutReader,
        block_type: Type[SampleBlock] = NpzSampleBlock,
        threading: bool = True,
    ) -> None:
        self.reader = reader
        self.block_type = block_type
        self.threading = threading

        self._store: SampleBlock = block_type()
        self._staging: SampleBlock = block_type()
        self._files: List[str] = []
        self._n_total = 0
        self._cursor = 0

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None

    # -- state --------------------------------------------------------------

    @property
    def running(self) -> bool:
        """True while a load is outstanding (not yet joined)."""
        return self._pending is not None

    @property
    def n_buffered(self) -> int:
        return len(self._store)

    @property
    def cursor(self) -> int:
        """Index of the next file to load."""
        return self._cursor

    # -- epoch --------------------------------------------------------------

    def begin_epoch(self, files: Sequence[str], n_total: int) -> None:
        """Reset both buffers and start loading ``files[0]``."""
        self._discard_pending()
        self._store.clear()
        self._staging.clear()
        self._files = list(files)
        self._n_total = n_total
        self._cursor = 0
        if not self._files:
            raise ExhaustedFileList("no input files configured")
        self._launch_next()

    def ensure_available(self, n: int, samples_processed: int) -> int:
        """Block until ``store`` holds at least *n* samples.

        Returns the number of buffered samples, which may exceed *n*.
        """
        while len(self._store) < n:
            if self._pending is None:
                raise ExhaustedFileList(
                    f"{n} samples requested but only {len(self._store)} buffered "
                    f"and no file left to read"
                )
            self._join()
            buffered = len(self._store)
            if samples_processed + buffered < self._n_total:
                if self._cursor >= len(self._files):
                    raise ExhaustedFileList(
                        "more batches requested than data in the sample: "
                        f"{samples_processed + buffered} of {self._n_total} samples "
                        f"seen after reading all {len(self._files)} files"
                    )
                self._launch_next()
        return len(self._store)

    def take_batch(self, n: int) -> SampleBlock:
        """Split the first *n* buffered samples off ``store``."""
        return self._store.split(n)

    def close(self) -> None:
        """Join any outstanding load, drop both buffers, stop the worker."""
        self._discard_pending()
        self._store.clear()
        self._staging.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -- internal -----------------------------------------------------------

    def _launch_next(self) -> None:
        path = self._files[self._cursor]
        self._cursor += 1
        logger.debug("prefetching %s (%d/%d)", path, self._cursor, len(self._files))
        if self.threading:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="trainfeed-prefetch",
                )
            self._pending = self._executor.submit(self.reader.load, path, self._staging)
            return

        # Inline load; the outcome is delivered at join time, as for a thread.
        future: Future = Future()
        try:
            self.reader.load(path, self._staging)
        except FileUnavailable as exc:
            future.set_exception(exc)
        else:
            future.set_result(None)
        self._pending = future

    def _join(self) -> None:
        future, self._pending = self._pending, None
        assert future is not None
        path = self._files[self._cursor - 1]
        future.result()
        try:
            self._store.append(self._staging)
        except ValueError as exc:
            raise MalformedFile(path, str(exc)) from exc
        finally:
            self._staging.clear()

    def _discard_pending(self) -> None:
        if self._pending is None:
            return
        future, self._pending = self._pending, None
        try:
            future.result()
        except FileUnavailable as exc:
            logger.warning("discarding failed prefetch: %s", exc)
