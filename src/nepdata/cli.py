"""Command line interface.

Usage::

    # Count frames
    nepdata count train.xyz

    # Copy, normalising the header of every frame
    nepdata copy train.xyz clean.xyz

    # Split by prediction accuracy (reads energy_train.out etc.)
    nepdata split train.xyz --force-threshold 0.5 --virial-threshold 0.1

    # Descriptor-space subsampling (reads descriptor.out)
    nepdata subsample train.xyz --min-distance 0.01 --dim 30
"""

from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Sequence
from pathlib import Path

from nepdata import __version__
from nepdata.accuracy import classify, read_predictions
from nepdata.config import ToolkitConfig, load_config
from nepdata.errors import NepDataError
from nepdata.logging import cli_logger, set_log_level
from nepdata.parser import copy_frames, count_frames, read_frames
from nepdata.subsample import read_descriptors, subsample


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nepdata",
        description="Tools for extended XYZ training datasets.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="JSON file with default thresholds and file names",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output",
    )
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("count", help="Count the frames in a file")
    p.add_argument("input", type=Path, help="Input extended XYZ file")

    p = sub.add_parser("copy", help="Read a file and write it back out")
    p.add_argument("input", type=Path, help="Input extended XYZ file")
    p.add_argument("output", type=Path, help="Output extended XYZ file")

    p = sub.add_parser(
        "split",
        help="Split into accurate.xyz and inaccurate.xyz",
    )
    p.add_argument("input", type=Path, help="Input extended XYZ file")
    p.add_argument(
        "--energy-threshold", type=float, default=None,
        help="Energy threshold in eV/atom (negative to ignore)",
    )
    p.add_argument(
        "--force-threshold", type=float, default=None,
        help="Force threshold in eV/A",
    )
    p.add_argument(
        "--virial-threshold", type=float, default=None,
        help="Virial threshold in eV/atom",
    )
    p.add_argument("--energy-file", default=None)
    p.add_argument("--force-file", default=None)
    p.add_argument("--virial-file", default=None)
    p.add_argument("--output-dir", type=Path, default=Path("."))
    p.add_argument(
        "--plot", type=Path, default=None,
        help="Save an energy/force parity plot to this file",
    )

    p = sub.add_parser("subsample", help="Descriptor-space subsampling")
    p.add_argument("input", type=Path, help="Input extended XYZ file")
    p.add_argument(
        "--min-distance", type=float, default=None,
        help="Minimal distance in descriptor space",
    )
    p.add_argument(
        "--dim", type=int, default=None,
        help="Dimension of descriptor space",
    )
    p.add_argument("--descriptor-file", default=None)
    p.add_argument("--method", choices=["brute", "kdtree"], default=None)
    p.add_argument("--output-dir", type=Path, default=Path("."))
    p.add_argument(
        "--plot", type=Path, default=None,
        help="Save a descriptor-space selection plot to this file",
    )
    return parser


def _run_count(args: argparse.Namespace, config: ToolkitConfig) -> None:
    count_frames(args.input)


def _run_copy(args: argparse.Namespace, config: ToolkitConfig) -> None:
    copy_frames(args.input, args.output)


def _run_split(args: argparse.Namespace, config: ToolkitConfig) -> None:
    config = config.replace(
        energy_threshold=args.energy_threshold,
        force_threshold=args.force_threshold,
        virial_threshold=args.virial_threshold,
        energy_file=args.energy_file,
        force_file=args.force_file,
        virial_file=args.virial_file,
    )
    frames = read_frames(args.input)
    predictions = read_predictions(
        frames, config.energy_file, config.force_file, config.virial_file,
    )
    split = classify(
        frames,
        predictions,
        config.energy_threshold,
        config.force_threshold,
        config.virial_threshold,
    )
    split.write(args.output_dir)
    if args.plot is not None:
        from nepdata.plotting import plot_parity

        plot_parity(predictions, args.plot, show=False)


def _run_subsample(args: argparse.Namespace, config: ToolkitConfig) -> None:
    config = config.replace(
        min_distance=args.min_distance,
        descriptor_dim=args.dim,
        descriptor_file=args.descriptor_file,
        subsample_method=args.method,
    )
    frames = read_frames(args.input)
    descriptors = read_descriptors(
        config.descriptor_file, len(frames), config.descriptor_dim,
    )
    start = time.perf_counter()
    result = subsample(
        frames,
        descriptors,
        config.min_distance ** 2,
        method=config.subsample_method,
    )
    cli_logger.info(
        "Time used for descriptor-space subsampling = "
        f"{time.perf_counter() - start:.3f} s"
    )
    result.write(args.output_dir)
    if args.plot is not None:
        from nepdata.plotting import plot_descriptor_selection

        plot_descriptor_selection(
            descriptors, result.selected_indices, args.plot, show=False,
        )


_COMMANDS = {
    "count": _run_count,
    "copy": _run_copy,
    "split": _run_split,
    "subsample": _run_subsample,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run the ``nepdata`` command.

    Args:
        argv: Command line arguments, excluding the program name.
            Defaults to ``sys.argv[1:]``.

    Returns:
        Exit status: 0 on success, 1 if the command failed.
    """
    args = _build_parser().parse_args(argv)
    try:
        config = (
            load_config(args.config) if args.config is not None
            else ToolkitConfig()
        )
        if args.verbose:
            set_log_level(logging.DEBUG)
        elif args.quiet:
            set_log_level(logging.WARNING)
        else:
            set_log_level(config.log_level)
        _COMMANDS[args.command](args, config)
    except (NepDataError, ValueError) as exc:
        cli_logger.error(str(exc))
        return 1
    cli_logger.info("Done.")
    return 0
