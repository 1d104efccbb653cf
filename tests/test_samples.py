"""Tests for the sample containers."""

import numpy as np
import pytest

from trainfeed.samples import HDF5SampleBlock, NpzSampleBlock, file_is_readable


def make_block(start, n, cls=NpzSampleBlock):
    ids = np.arange(start, start + n)
    return cls.from_arrays(
        features=[ids.reshape(n, 1).astype(np.float32)],
        targets=[ids.copy()],
    )


class TestSampleBlock:
    def test_empty_block(self):
        block = NpzSampleBlock()
        assert len(block) == 0
        assert block.n_elements() == 0
        assert block.empty

    def test_from_arrays_counts_samples(self):
        assert len(make_block(0, 7)) == 7

    def test_inconsistent_counts_rejected(self):
        with pytest.raises(ValueError):
            NpzSampleBlock.from_arrays(features=[np.zeros((3, 2))], targets=[np.zeros(4)])

    def test_scalar_arrays_rejected(self):
        with pytest.raises(ValueError):
            NpzSampleBlock.from_arrays(features=[np.float32(1.0)])

    def test_append_to_empty_adopts_layout(self):
        block = NpzSampleBlock()
        block.append(make_block(0, 5))
        assert len(block) == 5
        assert len(block.features) == 1 and len(block.targets) == 1

    def test_append_concatenates_in_order(self):
        block = make_block(0, 3)
        block.append(make_block(3, 4))
        assert block.targets[0].tolist() == list(range(7))
        assert block.features[0].shape == (7, 1)

    def test_append_empty_is_noop(self):
        block = make_block(0, 3)
        block.append(NpzSampleBlock())
        assert len(block) == 3

    def test_append_mismatched_layout(self):
        block = make_block(0, 3)
        other = NpzSampleBlock.from_arrays(features=[np.zeros((2, 1)), np.zeros((2, 1))])
        with pytest.raises(ValueError):
            block.append(other)

    def test_append_mismatched_shape(self):
        block = make_block(0, 3)
        other = NpzSampleBlock.from_arrays(
            features=[np.zeros((2, 5))], targets=[np.zeros(2)],
        )
        with pytest.raises(ValueError):
            block.append(other)

    def test_split_keeps_remainder(self):
        block = make_block(0, 10)
        head = block.split(4)
        assert isinstance(head, NpzSampleBlock)
        assert head.targets[0].tolist() == [0, 1, 2, 3]
        assert block.targets[0].tolist() == [4, 5, 6, 7, 8, 9]

    def test_split_everything(self):
        block = make_block(0, 4)
        head = block.split(4)
        assert len(head) == 4
        assert len(block) == 0

    def test_split_too_many(self):
        block = make_block(0, 4)
        with pytest.raises(ValueError):
            block.split(5)
        assert len(block) == 4

    def test_split_head_is_independent(self):
        block = make_block(0, 4)
        head = block.split(2)
        head.targets[0][0] = 99
        block.append(make_block(4, 1))
        assert block.targets[0].tolist() == [2, 3, 4]

    def test_clear(self):
        block = make_block(0, 4)
        block.clear()
        assert block.empty
        assert len(block) == 0


class TestNpzSampleBlock:
    def test_write_read_roundtrip(self, tmp_path):
        path = tmp_path / "part.npz"
        block = NpzSampleBlock.from_arrays(
            features=[np.arange(12, dtype=np.float32).reshape(6, 2)],
            targets=[np.arange(6)],
            weights=[np.linspace(0, 1, 6)],
        )
        block.write_to_file(path)
        assert path.exists()

        loaded = NpzSampleBlock()
        loaded.read_from_file(path)
        np.testing.assert_array_equal(loaded.features[0], block.features[0])
        np.testing.assert_array_equal(loaded.targets[0], block.targets[0])
        np.testing.assert_array_equal(loaded.weights[0], block.weights[0])

    def test_read_replaces_content(self, tmp_path):
        path = tmp_path / "part.npz"
        make_block(100, 3).write_to_file(path)
        block = make_block(0, 10)
        block.read_from_file(path)
        assert block.targets[0].tolist() == [100, 101, 102]

    def test_read_shapes(self, write_npz):
        path = write_npz("part.npz", 12)
        features, targets, weights = NpzSampleBlock.read_shapes_from_file(path)
        assert features == [(12, 1), (12, 2, 3)]
        assert targets == [(12,)]
        assert weights == [(12,)]

    def test_members_ordered_by_index(self, tmp_path):
        path = tmp_path / "many.npz"
        arrays = [np.zeros((2,) + (1,) * i) for i in range(12)]
        NpzSampleBlock.from_arrays(features=arrays).write_to_file(path)
        features, _, _ = NpzSampleBlock.read_shapes_from_file(path)
        assert [len(s) for s in features] == list(range(1, 13))

    def test_unknown_member_rejected(self, tmp_path):
        path = tmp_path / "other.npz"
        with open(path, "wb") as fh:
            np.savez(fh, images=np.zeros((3, 2)))
        with pytest.raises(ValueError):
            NpzSampleBlock().read_from_file(path)


class TestHDF5SampleBlock:
    def test_write_read_roundtrip(self, tmp_path):
        pytest.importorskip("h5py")
        path = tmp_path / "part.h5"
        make_block(0, 5, cls=HDF5SampleBlock).write_to_file(path)

        loaded = HDF5SampleBlock()
        loaded.read_from_file(path)
        assert loaded.targets[0].tolist() == [0, 1, 2, 3, 4]
        assert loaded.features[0].shape == (5, 1)

    def test_read_shapes(self, tmp_path):
        pytest.importorskip("h5py")
        path = tmp_path / "part.h5"
        make_block(0, 8, cls=HDF5SampleBlock).write_to_file(path)
        assert HDF5SampleBlock.read_shapes_from_file(path) == ([(8, 1)], [(8,)], [])


class TestFileIsReadable:
    def test_existing_file(self, write_npz):
        assert file_is_readable(write_npz("part.npz", 2))

    def test_missing_file(self, tmp_path):
        assert not file_is_readable(tmp_path / "missing.npz")

    def test_directory(self, tmp_path):
        assert not file_is_readable(tmp_path)
