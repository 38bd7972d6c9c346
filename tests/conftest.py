"""Shared test fixtures for nepdata."""

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def two_frames_path():
    """Return the path to a two-frame extended XYZ file.

    The first frame is minimal; the second carries an energy weight,
    a virial (and an ignored stress), a structure id, a weight and an
    unrecognised attribute, with stray spaces around ``=`` and quotes.
    """
    return FIXTURES_DIR / "two_frames.xyz"


@pytest.fixture
def extra_columns_path():
    """Return the path to a frame with extra per-atom columns."""
    return FIXTURES_DIR / "extra_columns.xyz"


@pytest.fixture
def missing_pos_path():
    """Return the path to a frame whose Properties lack ``pos``."""
    return FIXTURES_DIR / "missing_pos.xyz"
