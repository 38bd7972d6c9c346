"""Split a dataset into accurately and inaccurately predicted frames.

Predictions come from three text streams written by the training code,
each holding predicted and reference values:

* ``energy_train.out`` -- one ``pred ref`` pair per frame.
* ``force_train.out`` -- one line per atom, ``px py pz rx ry rz``,
  frame-major.
* ``virial_train.out`` -- per frame, six predicted components followed
  by six reference components.

The force and virial streams group predicted and reference values
differently; both layouts are read as written.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from nepdata._constants import (
    ENERGY_WEIGHT_CUTOFF,
    FORCE_CUTOFF_SQ,
    NUM_VIRIAL_COMPONENTS,
)
from nepdata.errors import MalformedInputError
from nepdata.logging import accuracy_logger
from nepdata.model import Frame
from nepdata.parser import Source, read_values, write_frames

ACCURATE_FILE = "accurate.xyz"
INACCURATE_FILE = "inaccurate.xyz"


@dataclass
class Predictions:
    """Predicted and reference values for a dataset.

    Attributes:
        energy: Shape ``(n_frames, 2)``, columns ``(pred, ref)``.
        force: Shape ``(n_atoms_total, 6)``, predicted xyz then
            reference xyz for each atom in frame-major order.
        virial: Shape ``(n_frames, 12)``, six predicted then six
            reference components.
    """

    energy: np.ndarray
    force: np.ndarray
    virial: np.ndarray

    def __post_init__(self) -> None:
        self.energy = np.asarray(self.energy, dtype=float).reshape(-1, 2)
        self.force = np.asarray(self.force, dtype=float).reshape(-1, 6)
        self.virial = np.asarray(self.virial, dtype=float).reshape(
            -1, 2 * NUM_VIRIAL_COMPONENTS,
        )
        if len(self.energy) != len(self.virial):
            raise MalformedInputError(
                f"energy has {len(self.energy)} frames but virial has "
                f"{len(self.virial)}"
            )

    @property
    def num_frames(self) -> int:
        return len(self.energy)


def read_predictions(
    frames: Sequence[Frame],
    energy_source: Source = "energy_train.out",
    force_source: Source = "force_train.out",
    virial_source: Source = "virial_train.out",
) -> Predictions:
    """Read the prediction streams for *frames*.

    Only as many values as the dataset needs are read from each
    stream.

    Raises:
        ResourceError: If a stream cannot be opened.
        MalformedInputError: If a stream is too short or holds a
            non-numeric token.
    """
    n_frames = len(frames)
    n_atoms = sum(frame.num_atom for frame in frames)
    return Predictions(
        energy=read_values(energy_source, 2 * n_frames, "energy"),
        force=read_values(force_source, 6 * n_atoms, "force"),
        virial=read_values(
            virial_source, 2 * NUM_VIRIAL_COMPONENTS * n_frames, "virial",
        ),
    )


def is_eligible(frame: Frame) -> bool:
    """Whether a frame takes part in the accuracy split.

    A frame is considered only if no atom has a squared force above
    400 and its energy is negative or its energy weight is below 0.5.
    """
    force_is_small = bool(
        np.all(np.sum(frame.forces ** 2, axis=1) <= FORCE_CUTOFF_SQ)
    )
    energy_is_small = frame.energy < 0.0
    return force_is_small and (
        energy_is_small or frame.energy_weight < ENERGY_WEIGHT_CUTOFF
    )


def is_accurate(
    frame: Frame,
    energy: np.ndarray,
    force: np.ndarray,
    virial: np.ndarray,
    energy_threshold: float,
    force_threshold: float,
    virial_threshold: float,
) -> bool:
    """Compare one frame's predictions with its reference values.

    Args:
        frame: The frame being tested.
        energy: ``(pred, ref)`` energy pair.
        force: ``(num_atom, 6)`` force rows.
        virial: 12 virial values, predicted then reference.
        energy_threshold: Largest accepted energy error.  Only applied
            when positive and the frame's energy weight exceeds 0.5.
        force_threshold: Largest accepted per-atom force error norm.
        virial_threshold: Largest accepted error of each virial
            component.
    """
    if frame.energy_weight > ENERGY_WEIGHT_CUTOFF and energy_threshold > 0:
        if abs(energy[0] - energy[1]) > energy_threshold:
            return False

    diff = force[:, :3] - force[:, 3:]
    if np.any(np.sum(diff ** 2, axis=1) > force_threshold ** 2):
        return False

    virial_diff = (
        virial[:NUM_VIRIAL_COMPONENTS] - virial[NUM_VIRIAL_COMPONENTS:]
    )
    return not np.any(np.abs(virial_diff) > virial_threshold)


@dataclass
class AccuracySplit:
    """Outcome of :func:`classify`.

    Ineligible frames appear in neither list.

    Attributes:
        accurate: Eligible frames within every threshold.
        inaccurate: Eligible frames outside at least one threshold.
        accurate_indices: Dataset positions of *accurate*.
        inaccurate_indices: Dataset positions of *inaccurate*.
    """

    accurate: list[Frame] = field(default_factory=list)
    inaccurate: list[Frame] = field(default_factory=list)
    accurate_indices: list[int] = field(default_factory=list)
    inaccurate_indices: list[int] = field(default_factory=list)

    def write(self, directory: str | Path = ".") -> None:
        """Write both frame sets into *directory*."""
        directory = Path(directory)
        write_frames(self.accurate, directory / ACCURATE_FILE)
        write_frames(self.inaccurate, directory / INACCURATE_FILE)


def classify(
    frames: Sequence[Frame],
    predictions: Predictions,
    energy_threshold: float,
    force_threshold: float,
    virial_threshold: float,
) -> AccuracySplit:
    """Split eligible frames by prediction accuracy.

    Prediction rows are consumed for every frame, eligible or not, so
    the streams stay aligned with the dataset.

    Args:
        frames: The loaded dataset.
        predictions: Values read by :func:`read_predictions`.
        energy_threshold: Energy error threshold; zero or negative
            disables the energy check.
        force_threshold: Per-atom force error threshold.
        virial_threshold: Per-component virial error threshold.

    Returns:
        The accurate and inaccurate eligible frames.

    Raises:
        MalformedInputError: If *predictions* does not cover every
            frame and atom.
    """
    n_atoms = sum(frame.num_atom for frame in frames)
    if (
        predictions.num_frames < len(frames)
        or len(predictions.force) < n_atoms
    ):
        raise MalformedInputError(
            f"predictions cover {predictions.num_frames} frames and "
            f"{len(predictions.force)} atoms, dataset has {len(frames)} "
            f"frames and {n_atoms} atoms"
        )

    split = AccuracySplit()
    atom = 0
    for i, frame in enumerate(frames):
        force = predictions.force[atom:atom + frame.num_atom]
        atom += frame.num_atom
        if not is_eligible(frame):
            continue
        if is_accurate(
            frame,
            predictions.energy[i],
            force,
            predictions.virial[i],
            energy_threshold,
            force_threshold,
            virial_threshold,
        ):
            split.accurate.append(frame)
            split.accurate_indices.append(i)
        else:
            split.inaccurate.append(frame)
            split.inaccurate_indices.append(i)

    accuracy_logger.info(
        f"Number of accurate structures = {len(split.accurate)}, "
        f"inaccurate = {len(split.inaccurate)}"
    )
    return split
