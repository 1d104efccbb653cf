"""
trainfeed Quick Start Example

Writes a handful of synthetic sample files, then runs two epochs over
them with background prefetching, printing what each epoch saw.
"""

import logging
import tempfile
from pathlib import Path

import numpy as np

from trainfeed import BatchGenerator, NpzSampleBlock


def write_files(directory: Path, sizes):
    """Write one ``.npz`` file per entry in *sizes*."""
    paths = []
    for i, n in enumerate(sizes):
        block = NpzSampleBlock.from_arrays(
            features=[np.random.randn(n, 3, 16, 16).astype(np.float32)],
            targets=[np.random.randint(0, 10, size=n)],
            weights=[np.ones(n, dtype=np.float32)],
        )
        path = directory / f"part{i:03d}.npz"
        block.write_to_file(path)
        paths.append(path)
    return paths


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with tempfile.TemporaryDirectory() as tmp:
        files = write_files(Path(tmp), [120, 80, 200, 64, 150])

        with BatchGenerator(batch_size=32, file_timeout=3) as gen:
            gen.set_file_list(files)
            print(f"  Samples       : {gen.get_n_total()}")
            print(f"  Batches/epoch : {gen.get_n_batches()}")

            for epoch in range(2):
                gen.prepare_next_epoch()
                order = [Path(p).name for p in gen.shuffled_files]
                seen = 0
                while True:
                    batch = gen.get_batch()
                    seen += len(batch)
                    if gen.last_batch():
                        break
                print(f"  Epoch {epoch}: order {order}, {seen} samples")


if __name__ == "__main__":
    main()
    print("[OK] quickstart completed successfully.")
