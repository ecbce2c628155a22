"""Shared pytest fixtures."""

import pytest

from factories import FIXED_NOW


@pytest.fixture
def now():
    return FIXED_NOW
