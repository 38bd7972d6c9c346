from __future__ import annotations

from dataclasses import dataclass

from nepdata.errors import MalformedInputError

_FORCE_NAMES = frozenset({"force", "forces"})


@dataclass(frozen=True)
class PropertyField:
    """One ``name:type:width`` triple of a ``Properties`` declaration.

    Attributes:
        name: Lower-cased column name, e.g. ``"pos"``.
        type: Type tag as written (``S``, ``R``, ``I``, ``L``).
        width: Number of whitespace-separated columns the field spans.
    """

    name: str
    type: str
    width: int


@dataclass(frozen=True)
class ColumnMap:
    """Column layout of the atom lines of one frame.

    Built from the ``Properties=`` header value.  The offset of a field
    is the sum of the widths of every field declared before it, and
    *num_columns* is the sum over all fields.

    Attributes:
        fields: The declared fields in order.
        species_offset: Column index of the species symbol.
        pos_offset: Column index of the first position component.
        force_offset: Column index of the first force component.
        num_columns: Total number of columns per atom line.
    """

    fields: tuple[PropertyField, ...]
    species_offset: int
    pos_offset: int
    force_offset: int
    num_columns: int

    @property
    def has_forces(self) -> bool:
        """Whether atom lines are wide enough to carry force columns."""
        return self.num_columns > 4

    @classmethod
    def from_properties(cls, value: str) -> ColumnMap:
        """Compile a ``Properties`` value such as ``species:S:1:pos:R:3``.

        Args:
            value: The text following ``Properties=``.

        Returns:
            The compiled column layout.

        Raises:
            MalformedInputError: If a width is not an integer, one of
                ``species``, ``pos`` and ``force``/``forces`` is not
                declared, or ``pos`` or the force field read by the
                decoder is not three columns wide.
        """
        parts = value.replace(":", " ").split()
        fields = []
        # An incomplete trailing triple is ignored.
        for k in range(len(parts) // 3):
            name, type_, width = parts[3 * k: 3 * k + 3]
            try:
                width_value = int(width)
            except ValueError:
                raise MalformedInputError(
                    f"Cannot parse width {width!r} of property {name!r}."
                ) from None
            fields.append(PropertyField(name.lower(), type_, width_value))

        positions: dict[str, int] = {}
        for k, f in enumerate(fields):
            key = "force" if f.name in _FORCE_NAMES else f.name
            positions[key] = k
        if "species" not in positions:
            raise MalformedInputError("'species' is missing in properties.")
        if "pos" not in positions:
            raise MalformedInputError("'pos' is missing in properties.")
        if "force" not in positions:
            raise MalformedInputError(
                "'force' or 'forces' is missing in properties."
            )

        def offset(k: int) -> int:
            return sum(f.width for f in fields[:k])

        column_map = cls(
            fields=tuple(fields),
            species_offset=offset(positions["species"]),
            pos_offset=offset(positions["pos"]),
            force_offset=offset(positions["force"]),
            num_columns=offset(len(fields)),
        )
        # Positions, and forces when present, are read as three columns.
        pos = fields[positions["pos"]]
        if pos.width != 3:
            raise MalformedInputError(
                f"'pos' should have width 3 in properties, got {pos.width}."
            )
        force = fields[positions["force"]]
        if column_map.has_forces and force.width != 3:
            raise MalformedInputError(
                f"'{force.name}' should have width 3 in properties, "
                f"got {force.width}."
            )
        return column_map
