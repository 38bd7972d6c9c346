"""nepdata: tools for extended XYZ training datasets.

nepdata reads and writes the extended XYZ frames used to train
machine-learned interatomic potentials, selects diverse subsets in
descriptor space, and splits datasets by prediction accuracy.

Example usage::

    from nepdata import read_frames, read_descriptors, subsample

    frames = read_frames("train.xyz")
    descriptors = read_descriptors("descriptor.out", len(frames), dim=30)
    result = subsample(frames, descriptors, min_distance_sq=1e-4)
    result.write("selection")
"""

__version__ = "0.1.0"

from nepdata.accuracy import (
    AccuracySplit,
    Predictions,
    classify,
    is_accurate,
    is_eligible,
    read_predictions,
)
from nepdata.config import ToolkitConfig, load_config, save_config
from nepdata.errors import (
    MalformedInputError,
    NepDataError,
    RangeViolationError,
    ResourceError,
)
from nepdata.model import ColumnMap, Frame, PropertyField
from nepdata.parser import (
    copy_frames,
    count_frames,
    format_frame,
    iter_frames,
    normalise_header,
    parse_header,
    read_frames,
    tokenize_header,
    write_frames,
    write_indices,
)
from nepdata.subsample import (
    SubsampleResult,
    read_descriptors,
    select_frames,
    subsample,
)

__all__ = [
    "AccuracySplit",
    "ColumnMap",
    "Frame",
    "MalformedInputError",
    "NepDataError",
    "Predictions",
    "PropertyField",
    "RangeViolationError",
    "ResourceError",
    "SubsampleResult",
    "ToolkitConfig",
    "classify",
    "copy_frames",
    "count_frames",
    "format_frame",
    "is_accurate",
    "is_eligible",
    "iter_frames",
    "load_config",
    "normalise_header",
    "parse_header",
    "read_descriptors",
    "read_frames",
    "read_predictions",
    "save_config",
    "select_frames",
    "subsample",
    "tokenize_header",
    "write_frames",
    "write_indices",
]
