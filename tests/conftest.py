"""
Shared pytest fixtures for MCReplicability tests.
"""

import contextlib
import io

import pytest

from tests.helpers.tables import make_raw_table, make_table


@pytest.fixture
def suppress_output():
    """Silence console reports and progress output."""
    with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()):
        yield


@pytest.fixture
def raw_table():
    """20 studies with 2-5 p-values each, in extraction column names."""
    return make_raw_table()


@pytest.fixture
def table():
    """Canonical observation table for 20 studies."""
    return make_table()


@pytest.fixture
def small_repetitions():
    """Settings for fast tests."""
    return {"resampling": 20, "bootstrap": 20}
