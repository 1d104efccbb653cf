"""
trainfeed samples: file-backed containers of training samples.

A :class:`SampleBlock` holds three ordered groups of numpy arrays
(features, targets, weights) whose leading dimension is the sample count.
Blocks can be appended to and split, which is all the batch generator
needs to turn a sequence of files into a stream of fixed-size batches.

Supported formats
-----------------
- **npz**: :class:`NpzSampleBlock`, numpy archives; no extra dependency.
- **HDF5**: :class:`HDF5SampleBlock`, requires ``h5py``.
- **Custom**: subclass :class:`SampleBlock`.

Arrays are stored under ``features_<i>``, ``targets_<i>`` and
``weights_<i>`` in both formats.
"""

from __future__ import annotations

import os
import zipfile
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Type, TypeVar, Union

import numpy as np
from numpy.lib import format as npy_format

PathLike = Union[str, "os.PathLike[str]"]
Shape = Tuple[int, ...]
Shapes = Tuple[List[Shape], List[Shape], List[Shape]]

GROUPS = ("features", "targets", "weights")

B = TypeVar("B", bound="SampleBlock")


def file_is_readable(path: PathLike) -> bool:
    """True if *path* is a regular file this process may read."""
    return os.path.isfile(path) and os.access(path, os.R_OK)


def _member_name(group: str, index: int) -> str:
    return f"{group}_{index}"


def _group_members(names: Iterable[str]) -> Dict[str, List[str]]:
    """Sort archive member names into their groups, ordered by index."""
    grouped: Dict[str, List[Tuple[int, str]]] = {g: [] for g in GROUPS}
    for name in names:
        group, _, index = name.rpartition("_")
        if group not in grouped or not index.isdigit():
            raise ValueError(f"unexpected array name {name!r}")
        grouped[group].append((int(index), name))
    return {g: [name for _, name in sorted(items)] for g, items in grouped.items()}


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class SampleBlock(ABC):
    """Abstract appendable, splittable container of samples.

    Subclasses implement the file format: ``_load_arrays``,
    ``read_shapes_from_file`` and ``write_to_file``.  Everything else
    works on the in-memory arrays.
    """

    def __init__(self) -> None:
        self.features: List[np.ndarray] = []
        self.targets: List[np.ndarray] = []
        self.weights: List[np.ndarray] = []

    @classmethod
    def from_arrays(
        cls: Type[B],
        features: Sequence[np.ndarray],
        targets: Sequence[np.ndarray] = (),
        weights: Sequence[np.ndarray] = (),
    ) -> B:
        block = cls()
        block._assign(features, targets, weights)
        return block

    # -- format hooks -------------------------------------------------------

    @abstractmethod
    def _load_arrays(self, path: str) -> Dict[str, List[np.ndarray]]:
        """Read every array in *path*, keyed by group name."""

    @classmethod
    @abstractmethod
    def read_shapes_from_file(cls, path: PathLike) -> Shapes:
        """Return ``(feature_shapes, target_shapes, weight_shapes)``.

        Only metadata is read; the leading dimension of each shape is the
        number of samples in the file.
        """

    @abstractmethod
    def write_to_file(self, path: PathLike) -> None:
        """Serialize the block to *path*."""

    # -- content ------------------------------------------------------------

    def read_from_file(self, path: PathLike) -> None:
        """Replace the content of this block with the arrays in *path*."""
        loaded = self._load_arrays(os.fspath(path))
        self._assign(loaded["features"], loaded["targets"], loaded["weights"])

    def n_elements(self) -> int:
        for group in (self.features, self.targets, self.weights):
            if group:
                return int(group[0].shape[0])
        return 0

    def __len__(self) -> int:
        return self.n_elements()

    @property
    def empty(self) -> bool:
        return not (self.features or self.targets or self.weights)

    def append(self, other: SampleBlock) -> None:
        """Concatenate *other*'s samples after ours."""
        if other.empty:
            return
        if self.empty:
            self._assign(other.features, other.targets, other.weights)
            return
        merged = []
        for group in GROUPS:
            mine, theirs = getattr(self, group), getattr(other, group)
            if len(mine) != len(theirs):
                raise ValueError(
                    f"cannot append: {len(theirs)} {group} arrays, expected {len(mine)}"
                )
            arrays = []
            for a, b in zip(mine, theirs):
                if a.shape[1:] != b.shape[1:]:
                    raise ValueError(
                        f"cannot append {group} of shape {b.shape} to {a.shape}"
                    )
                arrays.append(np.concatenate([a, b], axis=0))
            merged.append(arrays)
        self._assign(*merged)

    def split(self: B, n: int) -> B:
        """Return the first *n* samples as a new block and keep the rest."""
        available = self.n_elements()
        if n < 0 or n > available:
            raise ValueError(f"cannot split {n} samples off a block of {available}")
        head = type(self)()
        head._assign(
            [a[:n].copy() for a in self.features],
            [a[:n].copy() for a in self.targets],
            [a[:n].copy() for a in self.weights],
        )
        self._assign(
            [a[n:] for a in self.features],
            [a[n:] for a in self.targets],
            [a[n:] for a in self.weights],
        )
        return head

    def clear(self) -> None:
        self.features = []
        self.targets = []
        self.weights = []

    def arrays(self) -> Dict[str, np.ndarray]:
        """All arrays keyed by their on-disk member name."""
        return {
            _member_name(group, i): array
            for group in GROUPS
            for i, array in enumerate(getattr(self, group))
        }

    def _assign(
        self,
        features: Sequence[np.ndarray],
        targets: Sequence[np.ndarray],
        weights: Sequence[np.ndarray],
    ) -> None:
        groups = [[np.asarray(a) for a in g] for g in (features, targets, weights)]
        counts = set()
        for arrays in groups:
            for a in arrays:
                if a.ndim == 0:
                    raise ValueError("sample arrays need a leading sample dimension")
                counts.add(a.shape[0])
        if len(counts) > 1:
            raise ValueError(f"inconsistent sample counts: {sorted(counts)}")
        self.features, self.targets, self.weights = groups

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(n={self.n_elements()}, "
            f"features={len(self.features)}, targets={len(self.targets)}, "
            f"weights={len(self.weights)})"
        )


# ---------------------------------------------------------------------------
# npz
# ---------------------------------------------------------------------------

class NpzSampleBlock(SampleBlock):
    """Samples stored in a numpy ``.npz`` archive."""

    def _load_arrays(self, path: str) -> Dict[str, List[np.ndarray]]:
        with np.load(path, allow_pickle=False) as data:
            members = _group_members(data.files)
            return {g: [data[name] for name in members[g]] for g in GROUPS}

    @classmethod
    def read_shapes_from_file(cls, path: PathLike) -> Shapes:
        # Parse the .npy headers inside the archive, skipping array data.
        shapes: Dict[str, Shape] = {}
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                name = info.filename
                if not name.endswith(".npy"):
                    continue
                with archive.open(info) as fp:
                    version = npy_format.read_magic(fp)
                    if version == (1, 0):
                        shape, _, _ = npy_format.read_array_header_1_0(fp)
                    else:
                        shape, _, _ = npy_format.read_array_header_2_0(fp)
                shapes[name[: -len(".npy")]] = tuple(shape)
        members = _group_members(shapes)
        return tuple([shapes[name] for name in members[g]] for g in GROUPS)  # type: ignore[return-value]

    def write_to_file(self, path: PathLike) -> None:
        # np.savez appends ".npz" to bare paths; a file handle keeps the name.
        with open(path, "wb") as fh:
            np.savez(fh, **self.arrays())


# ---------------------------------------------------------------------------
# HDF5
# ---------------------------------------------------------------------------

def _h5py() -> Any:
    try:
        import h5py
    except ImportError:
        raise ImportError("h5py is required: pip install h5py")
    return h5py


class HDF5SampleBlock(SampleBlock):
    """Samples stored as root datasets of an HDF5 file.

    Shapes are taken from dataset metadata, so :meth:`read_shapes_from_file`
    never touches array data.
    """

    def _load_arrays(self, path: str) -> Dict[str, List[np.ndarray]]:
        h5py = _h5py()
        with h5py.File(path, "r") as f:
            members = _group_members(f.keys())
            return {g: [f[name][()] for name in members[g]] for g in GROUPS}

    @classmethod
    def read_shapes_from_file(cls, path: PathLike) -> Shapes:
        h5py = _h5py()
        with h5py.File(path, "r") as f:
            members = _group_members(f.keys())
            return tuple(  # type: ignore[return-value]
                [tuple(f[name].shape) for name in members[g]] for g in GROUPS
            )

    def write_to_file(self, path: PathLike) -> None:
        h5py = _h5py()
        with h5py.File(path, "w") as f:
            for name, array in self.arrays().items():
                f.create_dataset(name, data=array)
