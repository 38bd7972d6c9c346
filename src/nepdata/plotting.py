"""Diagnostic matplotlib figures for the accuracy split and subsampling.

Both functions follow the same pattern: build a figure, optionally save
it, then either show it or close it so that batch runs do not
accumulate open figures.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from nepdata.accuracy import Predictions


def _finish(
    fig: Figure,
    output: str | Path | None,
    dpi: int,
    show: bool | None,
) -> Figure:
    fig.tight_layout()
    if output is not None:
        fig.savefig(str(output), dpi=dpi, bbox_inches="tight")
    if show is None:
        show = output is None
    if show:
        plt.show()
    else:
        plt.close(fig)
    return fig


def _parity_panel(
    ax: Axes,
    predicted: np.ndarray,
    reference: np.ndarray,
    label: str,
) -> None:
    ax.scatter(reference, predicted, s=4, alpha=0.6, edgecolors="none")
    if reference.size > 0:
        lo = float(min(reference.min(), predicted.min()))
        hi = float(max(reference.max(), predicted.max()))
        ax.plot([lo, hi], [lo, hi], color="0.3", linewidth=0.8)
        rmse = float(np.sqrt(np.mean((predicted - reference) ** 2)))
        ax.set_title(f"{label} (RMSE {rmse:.4g})")
    else:
        ax.set_title(label)
    ax.set_xlabel("reference")
    ax.set_ylabel("predicted")
    ax.set_aspect("equal", adjustable="datalim")


def plot_parity(
    predictions: Predictions,
    output: str | Path | None = None,
    *,
    figsize: tuple[float, float] = (10.0, 5.0),
    dpi: int = 150,
    show: bool | None = None,
) -> Figure:
    """Plot predicted against reference energies and force components.

    Args:
        predictions: Values read by
            :func:`~nepdata.accuracy.read_predictions`.
        output: Optional file path to save the figure.  The format is
            inferred from the extension.
        figsize: Figure size in inches ``(width, height)``.
        dpi: Resolution for raster output formats.
        show: Whether to call ``plt.show()``.  Defaults to ``True``
            when *output* is ``None``.

    Returns:
        The matplotlib :class:`~matplotlib.figure.Figure` object.
    """
    fig, (ax_energy, ax_force) = plt.subplots(1, 2, figsize=figsize, dpi=dpi)
    _parity_panel(
        ax_energy, predictions.energy[:, 0], predictions.energy[:, 1],
        "energy",
    )
    _parity_panel(
        ax_force,
        predictions.force[:, :3].ravel(),
        predictions.force[:, 3:].ravel(),
        "force",
    )
    return _finish(fig, output, dpi, show)


def plot_descriptor_selection(
    descriptors: np.ndarray,
    selected_indices: Sequence[int],
    output: str | Path | None = None,
    *,
    figsize: tuple[float, float] = (5.0, 5.0),
    dpi: int = 150,
    show: bool | None = None,
) -> Figure:
    """Scatter the first two descriptor components, marking selections.

    One-dimensional descriptors are plotted against the frame index.

    Args:
        descriptors: Array of shape ``(n_frames, dim)``.
        selected_indices: Dataset positions of the selected frames.
        output: Optional file path to save the figure.
        figsize: Figure size in inches ``(width, height)``.
        dpi: Resolution for raster output formats.
        show: Whether to call ``plt.show()``.  Defaults to ``True``
            when *output* is ``None``.

    Returns:
        The matplotlib :class:`~matplotlib.figure.Figure` object.
    """
    descriptors = np.asarray(descriptors, dtype=float)
    if descriptors.ndim != 2:
        raise ValueError(
            "descriptors must have shape (n_frames, dim), "
            f"got {descriptors.shape}"
        )
    mask = np.zeros(len(descriptors), dtype=bool)
    mask[np.asarray(selected_indices, dtype=int)] = True

    if descriptors.shape[1] >= 2:
        x, y = descriptors[:, 0], descriptors[:, 1]
        xlabel, ylabel = "q[0]", "q[1]"
    else:
        x, y = np.arange(len(descriptors)), descriptors[:, 0]
        xlabel, ylabel = "frame", "q[0]"

    fig, ax = plt.subplots(1, 1, figsize=figsize, dpi=dpi)
    ax.scatter(x[~mask], y[~mask], s=6, color="0.7", label="not selected")
    ax.scatter(x[mask], y[mask], s=10, color="tab:red", label="selected")
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.legend(loc="best", frameon=False)
    return _finish(fig, output, dpi, show)
