"""Extended XYZ reader and writer.

A frame is one count line, one header line of ``key=value`` attributes
and one line per atom::

    2
    energy=-1.0 Lattice="10 0 0 0 10 0 0 0 10" Properties=species:S:1:pos:R:3:force:R:3
    H 0.0 0.0 0.0 0.1 0.0 0.0
    H 0.0 0.0 0.7 -0.1 0.0 0.0

The header is self-describing: its ``Properties`` value declares the
column layout of the atom lines, so each frame is decoded against its
own :class:`~nepdata.model.ColumnMap`.
"""

from __future__ import annotations

import io
import re
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Union

import numpy as np

from nepdata._constants import MATRIX_LENGTH, MAX_WEIGHT, WRITTEN_PROPERTIES
from nepdata.errors import (
    MalformedInputError,
    NepDataError,
    RangeViolationError,
    ResourceError,
)
from nepdata.logging import io_logger
from nepdata.model import ColumnMap, Frame

Source = Union[str, Path, IO[str]]

_SPACES_AROUND_EQUALS = re.compile(r"[ \t]*=[ \t]*")
_SPACES_AFTER_OPENING_QUOTE = re.compile(r'="[ \t]+')
_SPACES_BEFORE_CLOSING_QUOTE = re.compile(r'[ \t]+"')


# -- Source handling ----------------------------------------------------------

@contextmanager
def _open_source(source: Source) -> Iterator[IO[str]]:
    """Yield a text stream for a path, inline content or open stream.

    A :class:`~pathlib.Path`, or a string without newlines, names a
    file.  Any other string is treated as the file content itself.
    """
    if hasattr(source, "read"):
        yield source
        return
    if isinstance(source, str) and "\n" in source:
        yield io.StringIO(source)
        return
    try:
        handle = open(source)
    except OSError as exc:
        raise ResourceError(
            f"Failed to open {source}: {exc.strerror}"
        ) from exc
    io_logger.debug(f"{source} is opened.")
    try:
        yield handle
    finally:
        handle.close()
        io_logger.debug(f"{source} is closed.")


@contextmanager
def _open_destination(destination: str | Path | IO[str]) -> Iterator[IO[str]]:
    """Yield a writable text stream for a path or open stream."""
    if hasattr(destination, "write"):
        yield destination
        return
    try:
        handle = open(destination, "w")
    except OSError as exc:
        raise ResourceError(
            f"Failed to open {destination}: {exc.strerror}"
        ) from exc
    io_logger.debug(f"{destination} is opened.")
    try:
        yield handle
    finally:
        handle.close()
        io_logger.debug(f"{destination} is closed.")


def _source_name(source: Source) -> str:
    if hasattr(source, "read"):
        return getattr(source, "name", "<stream>")
    if isinstance(source, str) and "\n" in source:
        return "<string>"
    return str(source)


# -- Tokens -------------------------------------------------------------------

def parse_float(token: str, what: str = "value") -> float:
    """Parse *token* as a float, naming the offending token on failure."""
    try:
        return float(token)
    except ValueError:
        raise MalformedInputError(
            f"Cannot parse {what} from token {token!r}."
        ) from None


def parse_int(token: str, what: str = "value") -> int:
    """Parse *token* as an int, naming the offending token on failure."""
    try:
        return int(token)
    except ValueError:
        raise MalformedInputError(
            f"Cannot parse {what} from token {token!r}."
        ) from None


def normalise_header(line: str) -> str:
    """Remove incidental whitespace around ``=`` and quotes.

    Whitespace on either side of ``=`` is removed, so ``key = "a b"``
    becomes ``key="a b"``.  Whitespace after a quote that directly
    follows ``=`` (an opening quote) and before any other quote (a
    closing quote) is removed.  Whitespace inside quoted values is
    kept.  Applying this twice gives the same result as applying it
    once.

    Args:
        line: A raw header line.

    Returns:
        The normalised line.

    Raises:
        MalformedInputError: If the line begins with a quote.
    """
    line = line.strip()
    if line.startswith('"'):
        raise MalformedInputError(
            'The second line of a frame should not begin with ".'
        )
    line = _SPACES_AROUND_EQUALS.sub("=", line)
    line = _SPACES_AFTER_OPENING_QUOTE.sub('="', line)
    return _SPACES_BEFORE_CLOSING_QUOTE.sub('"', line)


def tokenize_header(line: str) -> list[str]:
    """Normalise a header line and split it on whitespace.

    Quoted values containing spaces span several tokens; the decoder
    reassembles them.  Tokens keep their case; keys are matched
    case-insensitively by :func:`parse_header`.
    """
    return normalise_header(line).split()


def _key(token: str) -> str | None:
    if "=" not in token:
        return None
    return token.split("=", 1)[0].lower()


def _value(token: str) -> str:
    return token.split("=", 1)[1]


# -- Header -------------------------------------------------------------------

@dataclass
class HeaderFields:
    """Recognised attributes of one frame header.

    Attributes:
        energy: Reference energy.
        lattice: 9 lattice scalars, row-major.
        column_map: Atom-line layout from ``Properties``.
        virial: 9 virial scalars, or ``None``.
        stress: 9 stress scalars, or ``None``.  Always ``None`` when
            *virial* is present.
        sid: Structure identifier, or ``None``.
        weight: Configuration weight.
        energy_weight: Energy weight.
    """

    energy: float
    lattice: np.ndarray
    column_map: ColumnMap
    virial: np.ndarray | None = None
    stress: np.ndarray | None = None
    sid: str | None = None
    weight: float = 1.0
    energy_weight: float = 1.0


def _parse_matrix(tokens: Sequence[str], n: int, key: str) -> np.ndarray:
    """Parse a quoted 9-value matrix starting at ``tokens[n]``."""
    window = list(tokens[n:n + MATRIX_LENGTH])
    if len(window) < MATRIX_LENGTH:
        raise MalformedInputError(
            f"'{key}' should have {MATRIX_LENGTH} values."
        )
    first = _value(window[0])
    if not first.startswith('"') or not window[-1].endswith('"'):
        raise MalformedInputError(
            f"'{key}' should be {MATRIX_LENGTH} values in double quotes."
        )
    window[0] = first[1:]
    window[-1] = window[-1][:-1]
    return np.array([parse_float(t, key) for t in window])


def _parse_string(tokens: Sequence[str], n: int) -> str:
    """Return a possibly quoted string value starting at ``tokens[n]``.

    A quoted value spanning several tokens is rejoined with single
    spaces, so runs of whitespace inside the quotes collapse.
    """
    value = _value(tokens[n])
    if not value.startswith('"'):
        return value
    parts = [value[1:]]
    if value.endswith('"') and len(value) > 1:
        return value[1:-1]
    for token in tokens[n + 1:]:
        if token.endswith('"'):
            parts.append(token[:-1])
            break
        parts.append(token)
    else:
        raise MalformedInputError("Unterminated quoted value in header.")
    return " ".join(parts)


def _index_keys(tokens: Sequence[str]) -> dict[str, int]:
    """Map each lower-cased key to the position of its last occurrence.

    Tokens inside a quoted value are part of that value, so an ``=``
    within them does not start a key.
    """
    index: dict[str, int] = {}
    in_quotes = False
    for n, token in enumerate(tokens):
        if in_quotes:
            in_quotes = not token.endswith('"')
            continue
        key = _key(token)
        if key is None:
            continue
        index[key] = n
        value = _value(token)
        if value.startswith('"'):
            in_quotes = len(value) == 1 or not value.endswith('"')
    return index


def parse_header(tokens: Sequence[str]) -> HeaderFields:
    """Decode the recognised attributes of a tokenised header line.

    Keys may appear in any order and are matched case-insensitively;
    when a key is repeated the last occurrence wins.  Unrecognised keys
    are ignored, as are ``key=value`` lookalikes inside another key's
    quoted value.  ``stress`` is only read when ``virial`` is absent.
    Whitespace runs inside a quoted ``sid`` collapse to single spaces.

    Args:
        tokens: Output of :func:`tokenize_header`.

    Returns:
        The decoded header.

    Raises:
        MalformedInputError: If the header is empty, a required key
            (``energy``, ``lattice``, ``properties``) is missing, or a
            value cannot be parsed.
        RangeViolationError: If ``weight`` is outside ``(0, 100]``.
    """
    if not tokens:
        raise MalformedInputError(
            "The second line for each frame should not be empty."
        )

    index = _index_keys(tokens)

    sid = _parse_string(tokens, index["sid"]) if "sid" in index else None

    energy_weight = 1.0
    if "energy_weight" in index:
        energy_weight = parse_float(
            _value(tokens[index["energy_weight"]]), "energy_weight",
        )

    if "energy" not in index:
        raise MalformedInputError(
            "'energy' is missing in the second line of a frame."
        )
    energy = parse_float(_value(tokens[index["energy"]]), "energy")

    weight = 1.0
    if "weight" in index:
        weight = parse_float(_value(tokens[index["weight"]]), "weight")
        if weight <= 0.0 or weight > MAX_WEIGHT:
            raise RangeViolationError(
                f"Configuration weight should > 0 and <= {MAX_WEIGHT:g}, "
                f"got {weight}."
            )

    if "lattice" not in index:
        raise MalformedInputError(
            "'lattice' is missing in the second line of a frame."
        )
    lattice = _parse_matrix(tokens, index["lattice"], "lattice")

    virial = None
    stress = None
    if "virial" in index:
        virial = _parse_matrix(tokens, index["virial"], "virial")
    elif "stress" in index:
        stress = _parse_matrix(tokens, index["stress"], "stress")

    if "properties" not in index:
        raise MalformedInputError(
            "'properties' is missing in the second line of a frame."
        )
    column_map = ColumnMap.from_properties(_value(tokens[index["properties"]]))

    return HeaderFields(
        energy=energy,
        lattice=lattice,
        column_map=column_map,
        virial=virial,
        stress=stress,
        sid=sid,
        weight=weight,
        energy_weight=energy_weight,
    )


# -- Atoms --------------------------------------------------------------------

def decode_atoms(
    lines: Sequence[str],
    column_map: ColumnMap,
) -> tuple[list[str], np.ndarray, np.ndarray]:
    """Decode atom lines against a column layout.

    Forces are only read when the layout has more than four columns;
    otherwise they are zero.

    Args:
        lines: One line per atom.
        column_map: Layout from the frame's ``Properties`` declaration.

    Returns:
        Tuple of ``(species, positions, forces)``.

    Raises:
        MalformedInputError: If a line has the wrong number of columns
            or a numeric column cannot be parsed.
    """
    species: list[str] = []
    positions = np.zeros((len(lines), 3))
    forces = np.zeros((len(lines), 3))
    pos = column_map.pos_offset
    force = column_map.force_offset

    for i, line in enumerate(lines):
        parts = line.split()
        if len(parts) != column_map.num_columns:
            raise MalformedInputError(
                "Number of items for an atom line mismatches properties: "
                f"expected {column_map.num_columns}, got {len(parts)}."
            )
        species.append(parts[column_map.species_offset])
        positions[i] = [parse_float(t, "position") for t in parts[pos:pos + 3]]
        if column_map.has_forces:
            forces[i] = [
                parse_float(t, "force") for t in parts[force:force + 3]
            ]

    return species, positions, forces


def _decode_frame(header_line: str, atom_lines: Sequence[str]) -> Frame:
    header = parse_header(tokenize_header(header_line))
    species, positions, forces = decode_atoms(atom_lines, header.column_map)
    return Frame(
        species=species,
        positions=positions,
        forces=forces,
        lattice=header.lattice,
        energy=header.energy,
        virial=header.virial,
        stress=header.stress,
        sid=header.sid,
        weight=header.weight,
        energy_weight=header.energy_weight,
    )


def iter_frames(lines: Iterable[str]) -> Iterator[Frame]:
    """Yield frames decoded from an iterable of lines.

    Iteration stops cleanly at a blank or missing count line.

    Raises:
        MalformedInputError: If a count line has more than one value,
            the stream ends inside a frame, or a frame cannot be
            decoded.
        RangeViolationError: If a count is below one or a weight is out
            of range.
    """
    numbered = enumerate(lines, start=1)
    frame_index = 0
    while True:
        lineno, count_line = next(numbered, (0, ""))
        tokens = count_line.split()
        if not tokens:
            return
        try:
            if len(tokens) > 1:
                raise MalformedInputError(
                    "The first line for each frame should have one value."
                )
            num_atom = parse_int(tokens[0], "number of atoms")
            if num_atom < 1:
                raise RangeViolationError(
                    "Number of atoms for each frame should >= 1."
                )
            block = [line for _, line in _take(numbered, num_atom + 1)]
            if len(block) < num_atom + 1:
                raise MalformedInputError(
                    f"Frame declares {num_atom} atoms but the input ends "
                    f"after {max(len(block) - 1, 0)}."
                )
            frame = _decode_frame(block[0], block[1:])
        except NepDataError as exc:
            raise type(exc)(
                f"{exc} (frame {frame_index}, line {lineno})"
            ) from exc
        io_logger.debug(f"frame {frame_index}: {num_atom} atoms")
        yield frame
        frame_index += 1


def _take(it: Iterator, n: int) -> Iterator:
    for _ in range(n):
        item = next(it, None)
        if item is None:
            return
        yield item


def read_frames(source: Source) -> list[Frame]:
    """Read every frame from an extended XYZ source.

    Args:
        source: Path to a ``.xyz`` file, an open text stream, or the
            file content as a string.

    Returns:
        The frames in file order.

    Raises:
        ResourceError: If the file cannot be opened.
        MalformedInputError: If any frame is malformed.
        RangeViolationError: If any value is out of range.
    """
    with _open_source(source) as handle:
        frames = list(iter_frames(handle))
    io_logger.info(
        f"Number of structures read from {_source_name(source)} = "
        f"{len(frames)}"
    )
    return frames


# -- Writing ------------------------------------------------------------------

def _format_float(value: float) -> str:
    return repr(float(value))


def _format_matrix(key: str, matrix: np.ndarray) -> str:
    values = " ".join(_format_float(v) for v in np.ravel(matrix))
    return f'{key}="{values}"'


def format_frame(frame: Frame) -> str:
    """Serialise one frame to extended XYZ text.

    Only the attributes a frame carries are written: ``energy_weight``
    and ``weight`` when they differ from ``1.0``, ``virial``, ``stress``
    and ``sid`` when present.  The ``Properties`` declaration is always
    ``species:S:1:pos:R:3:force:R:3``, so any extra per-atom columns of
    the source are dropped.

    Args:
        frame: The frame to serialise.

    Returns:
        The frame text, terminated by a newline.
    """
    header: list[str] = []
    if frame.energy_weight != 1.0:
        header.append(f"energy_weight={_format_float(frame.energy_weight)}")
    header.append(_format_matrix("Lattice", frame.lattice))
    header.append(f"energy={_format_float(frame.energy)}")
    if frame.has_virial:
        header.append(_format_matrix("virial", frame.virial))
    if frame.has_stress:
        header.append(_format_matrix("stress", frame.stress))
    if frame.has_sid:
        sid = frame.sid
        if any(c.isspace() for c in sid):
            sid = f'"{sid}"'
        header.append(f"sid={sid}")
    if frame.weight != 1.0:
        header.append(f"weight={_format_float(frame.weight)}")
    header.append(f"Properties={WRITTEN_PROPERTIES}")

    lines = [str(frame.num_atom), " ".join(header)]
    for symbol, r, f in zip(frame.species, frame.positions, frame.forces):
        values = " ".join(_format_float(v) for v in (*r, *f))
        lines.append(f"{symbol} {values}")
    return "\n".join(lines) + "\n"


def write_frames(
    frames: Iterable[Frame],
    destination: str | Path | IO[str],
) -> int:
    """Write frames to an extended XYZ file.

    Args:
        frames: Frames to write, in order.
        destination: Output path or open text stream.

    Returns:
        The number of frames written.

    Raises:
        ResourceError: If the file cannot be opened.
    """
    count = 0
    with _open_destination(destination) as handle:
        for frame in frames:
            handle.write(format_frame(frame))
            count += 1
    io_logger.info(
        f"Number of structures written into {_source_name(destination)} = "
        f"{count}"
    )
    return count


def write_indices(
    indices: Iterable[int],
    destination: str | Path | IO[str],
) -> None:
    """Write one 0-based frame index per line."""
    with _open_destination(destination) as handle:
        for i in indices:
            handle.write(f"{int(i)}\n")


def count_frames(source: Source) -> int:
    """Return the number of frames in *source*, validating each one."""
    return len(read_frames(source))


def copy_frames(source: Source, destination: str | Path | IO[str]) -> int:
    """Read *source* and write it back out in normalised form.

    Returns:
        The number of frames copied.
    """
    return write_frames(read_frames(source), destination)


# -- Auxiliary numeric streams ------------------------------------------------

def read_values(source: Source, count: int, what: str = "value") -> np.ndarray:
    """Read the first *count* whitespace-separated floats of *source*.

    Line breaks carry no meaning; values beyond *count* are ignored.

    Args:
        source: Path, open text stream or inline content.
        count: Number of values required.
        what: Description of the stream used in error messages.

    Returns:
        A 1-D array of length *count*.

    Raises:
        ResourceError: If the file cannot be opened.
        MalformedInputError: If a token is not a number or the stream
            holds fewer than *count* values.
    """
    with _open_source(source) as handle:
        tokens = handle.read().split()
    if len(tokens) < count:
        raise MalformedInputError(
            f"{_source_name(source)} holds {len(tokens)} values but "
            f"{count} {what} values are required."
        )
    tokens = tokens[:count]
    try:
        return np.asarray(tokens, dtype=float)
    except ValueError:
        # Re-parse one by one to report the offending token.
        return np.array([parse_float(t, what) for t in tokens])
