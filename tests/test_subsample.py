"""Tests for nepdata.subsample: greedy descriptor-space selection."""

import itertools

import numpy as np
import pytest

from nepdata.errors import MalformedInputError, RangeViolationError
from nepdata.model import Frame
from nepdata.subsample import (
    SubsampleResult,
    read_descriptors,
    select_frames,
    subsample,
)

METHODS = ["brute", "kdtree"]


def _frames(n):
    return [
        Frame(
            species=["Ar"],
            positions=[[0.0, 0.0, float(i)]],
            lattice=np.eye(3) * 10.0,
            energy=-float(i),
        )
        for i in range(n)
    ]


def _random_descriptors(n=60, dim=4, seed=0):
    return np.random.default_rng(seed).normal(size=(n, dim))


@pytest.mark.parametrize("method", METHODS)
class TestSelectFrames:
    def test_zero_threshold_selects_everything(self, method):
        q = _random_descriptors()
        selected, rejected = select_frames(q, 0.0, method)
        assert selected == list(range(len(q)))
        assert rejected == []

    def test_duplicates_selected_at_zero_threshold(self, method):
        q = np.zeros((5, 3))
        selected, rejected = select_frames(q, 0.0, method)
        assert selected == [0, 1, 2, 3, 4]

    def test_infinite_threshold_selects_first_only(self, method):
        q = _random_descriptors()
        selected, rejected = select_frames(q, np.inf, method)
        assert selected == [0]
        assert rejected == list(range(1, len(q)))

    def test_huge_threshold_selects_first_only(self, method):
        q = _random_descriptors()
        selected, _ = select_frames(q, 1e12, method)
        assert selected == [0]

    def test_first_frame_always_selected(self, method):
        q = np.array([[5.0], [0.0], [0.1]])
        selected, _ = select_frames(q, 1.0, method)
        assert selected[0] == 0

    def test_distance_equal_to_threshold_is_admitted(self, method):
        q = np.array([[0.0], [0.5]])
        selected, _ = select_frames(q, 0.25, method)
        assert selected == [0, 1]

    def test_selected_pairs_respect_threshold(self, method):
        q = _random_descriptors(n=200, dim=3, seed=1)
        threshold = 0.8
        selected, _ = select_frames(q, threshold, method)
        for i, j in itertools.combinations(selected, 2):
            assert np.sum((q[i] - q[j]) ** 2) >= threshold

    def test_rejected_frames_are_close_to_an_earlier_selection(self, method):
        q = _random_descriptors(n=200, dim=3, seed=2)
        threshold = 0.8
        selected, rejected = select_frames(q, threshold, method)
        chosen = np.array(selected)
        for i in rejected:
            earlier = chosen[chosen < i]
            assert np.min(np.sum((q[earlier] - q[i]) ** 2, axis=1)) < threshold

    def test_indices_partition_range(self, method):
        q = _random_descriptors(n=150, dim=5, seed=3)
        selected, rejected = select_frames(q, 2.0, method)
        assert sorted(selected + rejected) == list(range(150))
        assert not set(selected) & set(rejected)

    def test_order_dependent(self, method):
        q = np.array([[0.0], [1.0], [0.6]])
        selected, _ = select_frames(q, 0.25, method)
        assert q[selected, 0].tolist() == [0.0, 1.0]
        # Reordered: 0.6 is now admitted first and excludes 1.0.
        reordered = q[[0, 2, 1]]
        selected, _ = select_frames(reordered, 0.25, method)
        assert reordered[selected, 0].tolist() == [0.0, 0.6]

    def test_empty_input(self, method):
        assert select_frames(np.zeros((0, 3)), 1.0, method) == ([], [])

    def test_negative_threshold_raises(self, method):
        with pytest.raises(RangeViolationError, match="non-negative"):
            select_frames(_random_descriptors(), -1.0, method)

    def test_nan_threshold_raises(self, method):
        with pytest.raises(RangeViolationError):
            select_frames(_random_descriptors(), float("nan"), method)


class TestMethodsAgree:
    @pytest.mark.parametrize("threshold", [0.0, 0.05, 0.5, 2.0, 10.0])
    def test_kdtree_matches_brute(self, threshold):
        q = _random_descriptors(n=300, dim=6, seed=4)
        assert (
            select_frames(q, threshold, "brute")
            == select_frames(q, threshold, "kdtree")
        )

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError, match="unknown subsampling method"):
            select_frames(_random_descriptors(), 1.0, "fps")

    def test_one_dimensional_input_raises(self):
        with pytest.raises(ValueError, match="n_frames, dim"):
            select_frames(np.zeros(5), 1.0)


class TestSubsample:
    def test_descriptors_attached(self):
        frames = _frames(3)
        q = np.arange(6.0).reshape(3, 2)
        subsample(frames, q, 0.0)
        for frame, row in zip(frames, q):
            np.testing.assert_array_equal(frame.descriptor, row)

    def test_frames_follow_indices(self):
        frames = _frames(4)
        q = np.array([[0.0], [0.1], [2.0], [2.05]])
        result = subsample(frames, q, 1.0)
        assert result.selected_indices == [0, 2]
        assert result.rejected_indices == [1, 3]
        assert result.selected[0] is frames[0]
        assert result.selected[1] is frames[2]
        assert result.rejected[0] is frames[1]
        assert result.rejected[1] is frames[3]

    def test_row_count_mismatch_raises(self):
        with pytest.raises(MalformedInputError, match="one descriptor row"):
            subsample(_frames(3), np.zeros((2, 4)), 1.0)

    def test_write(self, tmp_path):
        frames = _frames(4)
        q = np.array([[0.0], [0.1], [2.0], [2.05]])
        subsample(frames, q, 1.0).write(tmp_path)
        assert (tmp_path / "indices_selected.txt").read_text() == "0\n2\n"
        assert (tmp_path / "indices_not_selected.txt").read_text() == "1\n3\n"
        assert (tmp_path / "selected.xyz").read_text().count("Properties=") == 2
        assert (tmp_path / "not_selected.xyz").exists()

    def test_empty_result_writes_empty_files(self, tmp_path):
        SubsampleResult().write(tmp_path)
        assert (tmp_path / "selected.xyz").read_text() == ""
        assert (tmp_path / "indices_not_selected.txt").read_text() == ""


class TestReadDescriptors:
    def test_one_vector_per_line(self):
        q = read_descriptors("1 2\n3 4\n5 6\n", num_frames=3, dim=2)
        np.testing.assert_array_equal(q, [[1, 2], [3, 4], [5, 6]])

    def test_vectors_split_across_lines(self):
        q = read_descriptors("1 2 3\n4 5 6\n", num_frames=2, dim=3)
        np.testing.assert_array_equal(q, [[1, 2, 3], [4, 5, 6]])

    def test_file(self, tmp_path):
        path = tmp_path / "descriptor.out"
        path.write_text("0.5 0.25\n-1 2\n")
        q = read_descriptors(path, num_frames=2, dim=2)
        assert q.shape == (2, 2)

    def test_too_few_values_raises(self):
        with pytest.raises(MalformedInputError, match="descriptor"):
            read_descriptors("1 2 3\n", num_frames=2, dim=2)

    def test_non_positive_dim_raises(self):
        with pytest.raises(RangeViolationError, match="dimension"):
            read_descriptors("1 2\n", num_frames=1, dim=0)
