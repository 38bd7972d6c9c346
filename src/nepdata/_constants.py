"""Shared constants used across the parser, selection and accuracy layers."""

WRITTEN_PROPERTIES: str = "species:S:1:pos:R:3:force:R:3"
"""Column layout always declared by :func:`~nepdata.parser.format_frame`."""

MAX_WEIGHT: float = 100.0
"""Upper bound (inclusive) on the configuration ``weight``."""

FORCE_CUTOFF_SQ: float = 400.0
"""Frames with any atom whose squared force exceeds this are ineligible."""

ENERGY_WEIGHT_CUTOFF: float = 0.5
"""Energy weight separating energy-trained frames from the rest."""

MATRIX_LENGTH: int = 9
"""Number of scalars in a quoted 3x3 header matrix."""

NUM_VIRIAL_COMPONENTS: int = 6
"""Independent virial components per frame in ``virial_train.out``."""

PROGRESS_INTERVAL: int = 1000
"""Log subsampling progress each time this many frames are selected."""
