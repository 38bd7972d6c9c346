"""Conversion between :class:`~nepdata.model.Frame` and pymatgen."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from nepdata.model import Frame

if TYPE_CHECKING:
    from pymatgen.core import Structure


def _require_pymatgen(caller: str):
    try:
        from pymatgen.core import Structure
    except ImportError:
        raise ImportError(
            f"pymatgen is required for {caller}(). "
            "Install it with: pip install pymatgen"
        )
    return Structure


def frame_to_pymatgen(frame: Frame) -> "Structure":
    """Convert a frame to a pymatgen ``Structure``.

    Forces are stored as the ``"forces"`` site property.  The energy,
    weights and, when present, the virial, stress and structure id are
    stored in ``Structure.properties``.

    Raises:
        ImportError: If pymatgen is not installed.
    """
    Structure = _require_pymatgen("frame_to_pymatgen")
    properties: dict = {
        "energy": frame.energy,
        "weight": frame.weight,
        "energy_weight": frame.energy_weight,
    }
    if frame.has_virial:
        properties["virial"] = frame.virial.tolist()
    if frame.has_stress:
        properties["stress"] = frame.stress.tolist()
    if frame.has_sid:
        properties["sid"] = frame.sid
    return Structure(
        frame.lattice,
        frame.species,
        frame.positions,
        coords_are_cartesian=True,
        site_properties={"forces": frame.forces.tolist()},
        properties=properties,
    )


def frame_from_pymatgen(
    structure: "Structure",
    energy: float | None = None,
    forces: np.ndarray | None = None,
) -> Frame:
    """Build a frame from a pymatgen ``Structure``.

    Args:
        structure: Source structure.  Cartesian coordinates are used
            as they are, without wrapping into the cell.
        energy: Reference energy.  Defaults to
            ``structure.properties["energy"]``.
        forces: Per-atom forces.  Defaults to the ``"forces"`` site
            property, or zeros.

    Returns:
        A new frame.  Virial, stress, structure id and weights are
        taken from ``structure.properties`` when present.

    Raises:
        ValueError: If no energy is given or stored on the structure.
    """
    properties = dict(getattr(structure, "properties", None) or {})
    if energy is None:
        energy = properties.get("energy")
    if energy is None:
        raise ValueError("an energy is required to build a Frame")
    if forces is None:
        forces = structure.site_properties.get("forces")

    virial = properties.get("virial")
    stress = properties.get("stress") if virial is None else None
    return Frame(
        species=[site.specie.symbol for site in structure],
        positions=structure.cart_coords,
        forces=forces,
        lattice=structure.lattice.matrix,
        energy=energy,
        virial=virial,
        stress=stress,
        sid=properties.get("sid"),
        weight=properties.get("weight", 1.0),
        energy_weight=properties.get("energy_weight", 1.0),
    )
