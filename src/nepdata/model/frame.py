from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from nepdata._constants import MAX_WEIGHT
from nepdata.errors import RangeViolationError


def _as_matrix(value: np.ndarray | None, name: str) -> np.ndarray | None:
    if value is None:
        return None
    arr = np.asarray(value, dtype=float)
    if arr.size != 9:
        raise ValueError(f"{name} must have 9 components, got {arr.size}")
    return arr.reshape(3, 3)


@dataclass
class Frame:
    """A single labelled atomic configuration.

    Attributes:
        species: Element symbol of each atom, length ``num_atom``.
        positions: Cartesian coordinates, shape ``(num_atom, 3)``.
        forces: Per-atom forces, shape ``(num_atom, 3)``.  Defaults to
            zeros when the source carries no force columns.
        lattice: Cell vectors as rows of a 3x3 matrix.
        energy: Reference energy of the configuration.
        virial: Optional 3x3 virial matrix.
        stress: Optional 3x3 stress matrix.  A frame never carries
            both a virial and a stress.
        sid: Optional structure identifier.
        weight: Configuration weight, ``0 < weight <= 100``.
        energy_weight: Weight of the energy term during training.
        descriptor: Optional descriptor vector, attached by
            :func:`~nepdata.subsample.subsample`.

    Raises:
        ValueError: If array shapes are inconsistent or both *virial*
            and *stress* are given.
        RangeViolationError: If *weight* is outside ``(0, 100]`` or the
            frame has no atoms.
    """

    species: list[str]
    positions: np.ndarray
    lattice: np.ndarray
    energy: float
    forces: np.ndarray | None = None
    virial: np.ndarray | None = None
    stress: np.ndarray | None = None
    sid: str | None = None
    weight: float = 1.0
    energy_weight: float = 1.0
    descriptor: np.ndarray | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.species = [str(s) for s in self.species]
        if len(self.species) < 1:
            raise RangeViolationError(
                "Number of atoms for each frame should >= 1."
            )
        self.positions = np.asarray(self.positions, dtype=float)
        n_atom = len(self.species)
        if self.positions.shape != (n_atom, 3):
            raise ValueError(
                f"positions must have shape ({n_atom}, 3), "
                f"got {self.positions.shape}"
            )
        if self.forces is None:
            self.forces = np.zeros((n_atom, 3))
        self.forces = np.asarray(self.forces, dtype=float)
        if self.forces.shape != (n_atom, 3):
            raise ValueError(
                f"forces must have shape ({n_atom}, 3), "
                f"got {self.forces.shape}"
            )
        self.lattice = _as_matrix(self.lattice, "lattice")
        self.virial = _as_matrix(self.virial, "virial")
        self.stress = _as_matrix(self.stress, "stress")
        if self.virial is not None and self.stress is not None:
            raise ValueError("a frame cannot carry both virial and stress")
        self.energy = float(self.energy)
        self.weight = float(self.weight)
        self.energy_weight = float(self.energy_weight)
        if self.weight <= 0.0 or self.weight > MAX_WEIGHT:
            raise RangeViolationError(
                f"Configuration weight should > 0 and <= {MAX_WEIGHT:g}, "
                f"got {self.weight}"
            )

    @property
    def num_atom(self) -> int:
        """Number of atoms in the frame."""
        return len(self.species)

    @property
    def box(self) -> np.ndarray:
        """The lattice flattened row-major to 9 scalars."""
        return self.lattice.reshape(9)

    @property
    def has_virial(self) -> bool:
        return self.virial is not None

    @property
    def has_stress(self) -> bool:
        return self.stress is not None

    @property
    def has_sid(self) -> bool:
        return self.sid is not None
