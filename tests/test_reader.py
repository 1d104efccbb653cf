"""Tests for the bounded-retry file reader."""

import logging
import os

import pytest

from trainfeed.errors import FileUnavailable
from trainfeed.reader import FileTimeoutReader, with_retries
from trainfeed.samples import NpzSampleBlock


class Flaky:
    """Callable failing *failures* times before returning ``"ok"``."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError(f"glitch {self.calls}")
        return "ok"


class TestWithRetries:
    def test_first_attempt_succeeds(self):
        sleeps = []
        assert with_retries(Flaky(0), attempts=3, sleep=sleeps.append) == "ok"
        assert sleeps == []

    def test_retries_until_success(self):
        sleeps = []
        action = Flaky(2)
        assert with_retries(action, attempts=3, interval=0.5, sleep=sleeps.append) == "ok"
        assert action.calls == 3
        assert sleeps == [0.5, 0.5]

    def test_raises_last_error_when_exhausted(self):
        sleeps, remaining = [], []
        action = Flaky(10)
        with pytest.raises(OSError, match="glitch 3"):
            with_retries(
                action, attempts=3, sleep=sleeps.append,
                on_error=lambda exc, left: remaining.append(left),
            )
        assert action.calls == 3
        assert remaining == [2, 1, 0]
        # no wait after the final attempt
        assert len(sleeps) == 2

    def test_at_least_one_attempt(self):
        action = Flaky(0)
        assert with_retries(action, attempts=0, sleep=lambda s: None) == "ok"
        assert action.calls == 1


class TestFileTimeoutReader:
    def test_load(self, write_npz):
        path = write_npz("part.npz", 5)
        block = NpzSampleBlock()
        FileTimeoutReader(retry_budget=1).load(path, block)
        assert len(block) == 5

    def test_transient_missing_file(self, write_npz, caplog):
        path = write_npz("part.npz", 5)
        hidden = str(path) + ".moving"
        os.rename(path, hidden)
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 2:
                os.rename(hidden, path)

        block = NpzSampleBlock()
        with caplog.at_level(logging.WARNING, logger="trainfeed"):
            FileTimeoutReader(retry_budget=5, sleep=sleep).load(path, block)

        assert len(block) == 5
        assert sleeps == [1.0, 1.0]
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert "4 more time(s)" in warnings[0].getMessage()

    def test_exhausted_budget(self, tmp_path, caplog):
        path = tmp_path / "broken.npz"
        path.write_bytes(b"not an archive")
        block = NpzSampleBlock()
        block.append(NpzSampleBlock.from_arrays(features=[[[1.0]]]))
        sleeps = []

        with caplog.at_level(logging.WARNING, logger="trainfeed"):
            with pytest.raises(FileUnavailable) as info:
                FileTimeoutReader(retry_budget=3, interval=0.25, sleep=sleeps.append).load(path, block)

        assert info.value.file_id == str(path)
        assert info.value.cause is not None
        assert info.value.__cause__ is info.value.cause
        assert block.empty
        assert sleeps == [0.25, 0.25]
        assert sum(r.levelno == logging.WARNING for r in caplog.records) == 3
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileUnavailable, match="missing.npz"):
            FileTimeoutReader(retry_budget=2, sleep=lambda s: None).load(
                tmp_path / "missing.npz", NpzSampleBlock(),
            )
