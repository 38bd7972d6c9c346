"""Toolkit settings saved to and loaded from JSON files."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path

from nepdata.errors import MalformedInputError, ResourceError

_METHODS = frozenset({"brute", "kdtree"})


@dataclass
class ToolkitConfig:
    """Thresholds and auxiliary file names used by the CLI commands.

    Command-line options take precedence over values loaded from a
    file.

    Attributes:
        energy_threshold: Energy error threshold for the accuracy
            split.  Zero or negative disables the energy check.
        force_threshold: Per-atom force error threshold.
        virial_threshold: Per-component virial error threshold.
        min_distance: Minimum descriptor-space distance between
            selected frames.  The subsampling engine receives its
            square.
        descriptor_dim: Dimension of each descriptor vector.
        energy_file: Energy prediction stream.
        force_file: Force prediction stream.
        virial_file: Virial prediction stream.
        descriptor_file: Descriptor stream.
        subsample_method: ``"brute"`` or ``"kdtree"``.
        log_level: Name of the logging level.
    """

    energy_threshold: float = -1.0
    force_threshold: float = 1.0
    virial_threshold: float = 1.0
    min_distance: float = 0.01
    descriptor_dim: int = 30
    energy_file: str = "energy_train.out"
    force_file: str = "force_train.out"
    virial_file: str = "virial_train.out"
    descriptor_file: str = "descriptor.out"
    subsample_method: str = "brute"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.subsample_method not in _METHODS:
            raise ValueError(
                f"subsample_method must be one of {sorted(_METHODS)}, "
                f"got {self.subsample_method!r}"
            )
        if self.descriptor_dim < 1:
            raise ValueError(
                f"descriptor_dim must be positive, got {self.descriptor_dim}"
            )
        if self.min_distance < 0:
            raise ValueError(
                f"min_distance must be non-negative, got {self.min_distance}"
            )

    def to_dict(self) -> dict:
        """Serialise to a dictionary holding only non-default fields."""
        defaults = _field_defaults(type(self))
        return {
            name: value
            for name, value in dataclasses.asdict(self).items()
            if value != defaults.get(name)
        }

    @classmethod
    def from_dict(cls, d: dict) -> ToolkitConfig:
        """Deserialise from a dictionary.

        Raises:
            ValueError: If *d* contains unknown keys.
        """
        unknown = set(d) - set(_field_defaults(cls))
        if unknown:
            raise ValueError(
                f"unknown keys in config file: {sorted(unknown)}"
            )
        return cls(**d)

    def replace(self, **changes: object) -> ToolkitConfig:
        """Return a copy with the non-``None`` *changes* applied."""
        return dataclasses.replace(
            self, **{k: v for k, v in changes.items() if v is not None},
        )


def _field_defaults(cls: type) -> dict:
    """Return ``{field_name: default}`` for a dataclass."""
    return {
        f.name: f.default
        for f in dataclasses.fields(cls)
        if f.default is not dataclasses.MISSING
    }


def save_config(config: ToolkitConfig, path: str | Path) -> None:
    """Save *config* to a JSON file.

    Only non-default values are written, with two-space indentation.
    """
    Path(path).write_text(json.dumps(config.to_dict(), indent=2) + "\n")


def load_config(path: str | Path) -> ToolkitConfig:
    """Load a :class:`ToolkitConfig` from a JSON file.

    Missing keys keep their defaults.

    Raises:
        ResourceError: If the file cannot be read.
        MalformedInputError: If the file is not a JSON object.
        ValueError: If the file contains unknown keys or invalid
            values.
    """
    try:
        text = Path(path).read_text()
    except OSError as exc:
        raise ResourceError(f"Failed to open {path}: {exc.strerror}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedInputError(f"{path} must contain a JSON object")
    return ToolkitConfig.from_dict(data)
