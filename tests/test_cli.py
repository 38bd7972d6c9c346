"""Tests for nepdata.cli."""

import json

import numpy as np
import pytest

from nepdata import __version__
from nepdata.cli import main
from nepdata.parser import read_frames


def _write_predictions(directory, force_error=0.0):
    """Prediction streams for the two-frame fixture (2 + 3 atoms)."""
    (directory / "energy_train.out").write_text("0 0\n0 0\n")
    force = np.zeros((5, 6))
    force[0, 0] = force_error
    (directory / "force_train.out").write_text(
        "\n".join(" ".join(str(v) for v in row) for row in force) + "\n"
    )
    (directory / "virial_train.out").write_text(
        ("0 " * 12 + "\n") * 2
    )


def _split_args(directory):
    return [
        "--energy-file", str(directory / "energy_train.out"),
        "--force-file", str(directory / "force_train.out"),
        "--virial-file", str(directory / "virial_train.out"),
        "--output-dir", str(directory),
    ]


class TestCount:
    def test_count(self, two_frames_path):
        assert main(["count", str(two_frames_path)]) == 0

    def test_missing_file(self, tmp_path):
        assert main(["count", str(tmp_path / "absent.xyz")]) == 1

    def test_malformed_file(self, missing_pos_path):
        assert main(["count", str(missing_pos_path)]) == 1


class TestCopy:
    def test_copy(self, two_frames_path, tmp_path):
        out = tmp_path / "clean.xyz"
        assert main(["copy", str(two_frames_path), str(out)]) == 0
        frames = read_frames(out)
        assert len(frames) == 2
        assert frames[1].sid == "water_01"

    def test_failed_read_writes_nothing(self, missing_pos_path, tmp_path):
        out = tmp_path / "clean.xyz"
        assert main(["copy", str(missing_pos_path), str(out)]) == 1
        assert not out.exists()


class TestSplit:
    def test_all_accurate(self, two_frames_path, tmp_path):
        _write_predictions(tmp_path)
        argv = ["split", str(two_frames_path)] + _split_args(tmp_path)
        assert main(argv) == 0
        assert len(read_frames(tmp_path / "accurate.xyz")) == 2
        assert (tmp_path / "inaccurate.xyz").read_text() == ""

    def test_force_threshold_option(self, two_frames_path, tmp_path):
        _write_predictions(tmp_path, force_error=0.3)
        argv = ["split", str(two_frames_path), "--force-threshold", "0.2"]
        assert main(argv + _split_args(tmp_path)) == 0
        assert len(read_frames(tmp_path / "accurate.xyz")) == 1
        assert len(read_frames(tmp_path / "inaccurate.xyz")) == 1

    def test_default_file_names(self, two_frames_path, tmp_path, monkeypatch):
        _write_predictions(tmp_path)
        monkeypatch.chdir(tmp_path)
        assert main(["split", str(two_frames_path)]) == 0
        assert (tmp_path / "accurate.xyz").exists()

    def test_missing_prediction_file(self, two_frames_path, tmp_path):
        argv = ["split", str(two_frames_path)] + _split_args(tmp_path)
        assert main(argv) == 1
        assert not (tmp_path / "accurate.xyz").exists()

    def test_config_file(self, two_frames_path, tmp_path):
        _write_predictions(tmp_path, force_error=0.3)
        config = tmp_path / "nepdata.json"
        config.write_text(json.dumps({"force_threshold": 0.2}))
        argv = ["--config", str(config), "split", str(two_frames_path)]
        assert main(argv + _split_args(tmp_path)) == 0
        assert len(read_frames(tmp_path / "inaccurate.xyz")) == 1

    def test_bad_config_file(self, two_frames_path, tmp_path):
        config = tmp_path / "nepdata.json"
        config.write_text(json.dumps({"no_such_option": 1}))
        assert main(["--config", str(config), "count",
                     str(two_frames_path)]) == 1

    def test_plot(self, two_frames_path, tmp_path):
        _write_predictions(tmp_path)
        plot = tmp_path / "parity.png"
        argv = ["split", str(two_frames_path), "--plot", str(plot)]
        assert main(argv + _split_args(tmp_path)) == 0
        assert plot.exists()


class TestSubsample:
    def _args(self, two_frames_path, tmp_path, *extra):
        return [
            "subsample", str(two_frames_path),
            "--descriptor-file", str(tmp_path / "descriptor.out"),
            "--output-dir", str(tmp_path),
            *extra,
        ]

    def test_distant_frames_both_selected(self, two_frames_path, tmp_path):
        (tmp_path / "descriptor.out").write_text("0 0\n5 5\n")
        argv = self._args(two_frames_path, tmp_path,
                          "--dim", "2", "--min-distance", "1")
        assert main(argv) == 0
        assert (tmp_path / "indices_selected.txt").read_text() == "0\n1\n"
        assert (tmp_path / "indices_not_selected.txt").read_text() == ""
        assert len(read_frames(tmp_path / "selected.xyz")) == 2

    def test_distance_is_squared(self, two_frames_path, tmp_path):
        # Squared distance is 2; a minimum distance of 1.5 rejects.
        (tmp_path / "descriptor.out").write_text("0 0\n1 1\n")
        argv = self._args(two_frames_path, tmp_path,
                          "--dim", "2", "--min-distance", "1.5")
        assert main(argv) == 0
        assert (tmp_path / "indices_selected.txt").read_text() == "0\n"
        assert (tmp_path / "indices_not_selected.txt").read_text() == "1\n"

    @pytest.mark.parametrize("method", ["brute", "kdtree"])
    def test_methods(self, two_frames_path, tmp_path, method):
        (tmp_path / "descriptor.out").write_text("0 0\n1 1\n")
        argv = self._args(two_frames_path, tmp_path, "--dim", "2",
                          "--min-distance", "1.0", "--method", method)
        assert main(argv) == 0
        assert (tmp_path / "indices_selected.txt").read_text() == "0\n1\n"

    def test_dim_from_config(self, two_frames_path, tmp_path):
        (tmp_path / "descriptor.out").write_text("0 0 0\n3 3 3\n")
        config = tmp_path / "nepdata.json"
        config.write_text(json.dumps({"descriptor_dim": 3}))
        argv = ["--config", str(config)] + self._args(
            two_frames_path, tmp_path,
        )
        assert main(argv) == 0
        assert (tmp_path / "indices_selected.txt").read_text() == "0\n1\n"

    def test_short_descriptor_file(self, two_frames_path, tmp_path):
        (tmp_path / "descriptor.out").write_text("0 0\n")
        argv = self._args(two_frames_path, tmp_path, "--dim", "2")
        assert main(argv) == 1
        assert not (tmp_path / "selected.xyz").exists()

    def test_plot(self, two_frames_path, tmp_path):
        (tmp_path / "descriptor.out").write_text("0 0\n5 5\n")
        plot = tmp_path / "selection.png"
        argv = self._args(two_frames_path, tmp_path, "--dim", "2",
                          "--plot", str(plot))
        assert main(argv) == 0
        assert plot.exists()


class TestGlobalOptions:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_verbose_and_quiet_exclusive(self, two_frames_path):
        with pytest.raises(SystemExit):
            main(["-v", "-q", "count", str(two_frames_path)])

    def test_quiet(self, two_frames_path):
        assert main(["-q", "count", str(two_frames_path)]) == 0
