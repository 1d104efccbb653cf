"""Shared fixtures: small npz sample files with globally unique sample ids."""

import numpy as np
import pytest

from trainfeed.samples import NpzSampleBlock


@pytest.fixture
def write_npz(tmp_path):
    """``write_npz(name, n)`` writes *n* samples and returns the path.

    Feature 0 and target 0 carry a running sample id, so tests can check
    exactly which samples a batch holds.
    """
    next_id = [0]

    def _write(name, n):
        start = next_id[0]
        next_id[0] += n
        ids = np.arange(start, start + n)
        block = NpzSampleBlock.from_arrays(
            features=[ids.reshape(n, 1).astype(np.float32), np.ones((n, 2, 3), dtype=np.float32)],
            targets=[ids.copy()],
            weights=[np.full(n, 0.5)],
        )
        path = tmp_path / name
        block.write_to_file(path)
        return path

    return _write
