"""Shared fixtures."""
import os

import pytest


@pytest.fixture
def write_file(tmp_path):
    """Write bytes under tmp_path and return the path as a string."""
    def _write(name, data):
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return _write


@pytest.fixture
def dst_path(tmp_path):
    return str(tmp_path / "converted")


@pytest.fixture
def no_leftovers(tmp_path):
    """Check that no temporary files were left next to the destination."""
    yield
    assert not [f for f in os.listdir(tmp_path) if f.endswith(".tmp")]
