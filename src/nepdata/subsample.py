"""Descriptor-space subsampling by greedy minimum-distance admission.

Frames are visited in dataset order.  The first frame is always
selected; every later frame is selected only if its squared descriptor
distance to each frame selected so far is at least the threshold.  The
result therefore depends on input order: this is not farthest-point
sampling, which would always admit the globally most distant remaining
frame.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import numpy as np
from scipy.spatial import cKDTree

from nepdata._constants import PROGRESS_INTERVAL
from nepdata.errors import MalformedInputError, RangeViolationError
from nepdata.logging import select_logger
from nepdata.model import Frame
from nepdata.parser import Source, read_values, write_frames, write_indices

Method = Literal["brute", "kdtree"]

SELECTED_FILE = "selected.xyz"
NOT_SELECTED_FILE = "not_selected.xyz"
SELECTED_INDICES_FILE = "indices_selected.txt"
NOT_SELECTED_INDICES_FILE = "indices_not_selected.txt"


def read_descriptors(source: Source, num_frames: int, dim: int) -> np.ndarray:
    """Read one descriptor vector per frame.

    The stream is read as whitespace-separated floats, so it does not
    matter whether each vector sits on its own line.

    Args:
        source: Path to ``descriptor.out``, an open stream or content.
        num_frames: Number of frames in the dataset.
        dim: Dimension of each descriptor vector.

    Returns:
        Array of shape ``(num_frames, dim)`` in dataset order.

    Raises:
        RangeViolationError: If *dim* is not positive.
        MalformedInputError: If the stream is too short or holds a
            non-numeric token.
    """
    if dim < 1:
        raise RangeViolationError(
            f"descriptor dimension must be positive, got {dim}"
        )
    values = read_values(source, num_frames * dim, "descriptor")
    return values.reshape(num_frames, dim)


def _check_threshold(min_distance_sq: float) -> None:
    if np.isnan(min_distance_sq) or min_distance_sq < 0:
        raise RangeViolationError(
            "minimum squared distance must be non-negative, "
            f"got {min_distance_sq}"
        )


def _log_progress(n_selected: int, index: int) -> None:
    if n_selected % PROGRESS_INTERVAL == 0:
        select_logger.info(
            f"#selected = {n_selected}, current structure ID = {index}"
        )


def _select_brute(
    descriptors: np.ndarray,
    min_distance_sq: float,
) -> np.ndarray:
    n_frames = len(descriptors)
    selected = np.zeros(n_frames, dtype=bool)
    # Rows [0, n_selected) hold the descriptors selected so far.
    pool = np.empty_like(descriptors)
    n_selected = 0
    for i, q in enumerate(descriptors):
        if n_selected > 0:
            dist_sq = np.sum((pool[:n_selected] - q) ** 2, axis=1)
            if np.any(dist_sq < min_distance_sq):
                continue
        pool[n_selected] = q
        n_selected += 1
        selected[i] = True
        _log_progress(n_selected, i)
    return selected


def _select_kdtree(
    descriptors: np.ndarray,
    min_distance_sq: float,
) -> np.ndarray:
    """Same admission rule, with neighbour candidates from a k-d tree.

    The tree is built once over every frame.  For each frame, the ball
    query returns all frames within the threshold radius (slightly
    padded against rounding); the exact squared distance to those that
    are already selected decides admission.
    """
    n_frames = len(descriptors)
    selected = np.zeros(n_frames, dtype=bool)
    tree = cKDTree(descriptors)
    radius = np.sqrt(min_distance_sq) * (1.0 + 1e-9) + 1e-12
    n_selected = 0
    for i, q in enumerate(descriptors):
        if n_selected > 0:
            neighbours = np.asarray(tree.query_ball_point(q, radius), dtype=int)
            neighbours = neighbours[selected[neighbours]]
            if len(neighbours) > 0:
                dist_sq = np.sum((descriptors[neighbours] - q) ** 2, axis=1)
                if np.any(dist_sq < min_distance_sq):
                    continue
        n_selected += 1
        selected[i] = True
        _log_progress(n_selected, i)
    return selected


def select_frames(
    descriptors: np.ndarray,
    min_distance_sq: float,
    method: Method = "brute",
) -> tuple[list[int], list[int]]:
    """Partition frame indices by greedy minimum-distance admission.

    Index 0 is always selected.  Index ``i > 0`` is selected if and
    only if its squared Euclidean distance to every previously selected
    frame is at least *min_distance_sq*.  With a threshold of zero every
    frame is selected; with an infinite threshold only frame 0 is.

    The ``"brute"`` method compares against the growing selected set
    directly, costing ``O(n * k * dim)`` for ``k`` selected frames.  The
    ``"kdtree"`` method gives the same result using a
    :class:`scipy.spatial.cKDTree` and is faster when the threshold
    is small compared with the spread of the descriptors.

    Args:
        descriptors: Array of shape ``(n_frames, dim)``.
        min_distance_sq: Squared distance threshold.
        method: ``"brute"`` or ``"kdtree"``.

    Returns:
        Tuple of ``(selected_indices, rejected_indices)``, each in
        increasing order.  Together they cover every index once.

    Raises:
        ValueError: If *descriptors* is not 2-D or *method* is unknown.
        RangeViolationError: If *min_distance_sq* is negative or NaN.
    """
    descriptors = np.asarray(descriptors, dtype=float)
    if descriptors.ndim != 2:
        raise ValueError(
            "descriptors must have shape (n_frames, dim), "
            f"got {descriptors.shape}"
        )
    if method not in ("brute", "kdtree"):
        raise ValueError(f"unknown subsampling method: {method!r}")
    _check_threshold(min_distance_sq)
    if len(descriptors) == 0:
        return [], []

    if method == "kdtree" and np.isfinite(min_distance_sq):
        mask = _select_kdtree(descriptors, min_distance_sq)
    else:
        mask = _select_brute(descriptors, min_distance_sq)

    selected = np.flatnonzero(mask).tolist()
    rejected = np.flatnonzero(~mask).tolist()
    return selected, rejected


@dataclass
class SubsampleResult:
    """Outcome of :func:`subsample`.

    Attributes:
        selected: Selected frames in dataset order.
        rejected: Rejected frames in dataset order.
        selected_indices: Dataset positions of *selected*.
        rejected_indices: Dataset positions of *rejected*.
    """

    selected: list[Frame] = field(default_factory=list)
    rejected: list[Frame] = field(default_factory=list)
    selected_indices: list[int] = field(default_factory=list)
    rejected_indices: list[int] = field(default_factory=list)

    def write(self, directory: str | Path = ".") -> None:
        """Write both frame sets and both index lists into *directory*."""
        directory = Path(directory)
        write_frames(self.selected, directory / SELECTED_FILE)
        write_frames(self.rejected, directory / NOT_SELECTED_FILE)
        write_indices(self.selected_indices, directory / SELECTED_INDICES_FILE)
        write_indices(
            self.rejected_indices, directory / NOT_SELECTED_INDICES_FILE,
        )


def subsample(
    frames: Sequence[Frame],
    descriptors: np.ndarray,
    min_distance_sq: float,
    method: Method = "brute",
) -> SubsampleResult:
    """Attach descriptors to *frames* and select a diverse subset.

    Args:
        frames: The loaded dataset.
        descriptors: One row per frame, in dataset order.
        min_distance_sq: Squared distance threshold, see
            :func:`select_frames`.
        method: ``"brute"`` or ``"kdtree"``.

    Returns:
        The selected and rejected frames with their indices.

    Raises:
        MalformedInputError: If the number of descriptor rows does not
            match the number of frames.
    """
    descriptors = np.asarray(descriptors, dtype=float)
    if descriptors.ndim != 2 or len(descriptors) != len(frames):
        raise MalformedInputError(
            f"expected one descriptor row per frame ({len(frames)}), "
            f"got shape {descriptors.shape}"
        )
    for frame, row in zip(frames, descriptors):
        frame.descriptor = row.copy()

    selected, rejected = select_frames(descriptors, min_distance_sq, method)
    select_logger.info(
        f"Number of structures selected = {len(selected)}, "
        f"not selected = {len(rejected)}"
    )
    return SubsampleResult(
        selected=[frames[i] for i in selected],
        rejected=[frames[i] for i in rejected],
        selected_indices=selected,
        rejected_indices=rejected,
    )
