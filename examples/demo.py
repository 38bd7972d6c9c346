"""Demo script: subsample a synthetic dataset and plot the selection."""

from pathlib import Path

import numpy as np

from nepdata import Frame, subsample
from nepdata.plotting import plot_descriptor_selection

OUTPUT = Path(__file__).resolve().parent / "demo_output"


def _synthetic_frames(n, rng):
    frames = []
    for i in range(n):
        positions = rng.uniform(0.0, 8.0, size=(4, 3))
        frames.append(Frame(
            species=["Si"] * 4,
            positions=positions,
            lattice=np.eye(3) * 8.0,
            energy=-4.5 * 4 + rng.normal(scale=0.1),
            forces=rng.normal(scale=0.2, size=(4, 3)),
            sid=f"si_{i:03d}",
        ))
    return frames


def main():
    rng = np.random.default_rng(42)
    frames = _synthetic_frames(500, rng)
    descriptors = rng.normal(size=(len(frames), 2))

    result = subsample(frames, descriptors, min_distance_sq=0.3 ** 2)
    print(f"Selected {len(result.selected)} of {len(frames)} frames")

    OUTPUT.mkdir(exist_ok=True)
    result.write(OUTPUT)
    plot_descriptor_selection(
        descriptors, result.selected_indices,
        output=OUTPUT / "selection.pdf", show=False,
    )
    print(f"Wrote results to {OUTPUT}")


if __name__ == "__main__":
    main()
