import pytest
from fakes import at_day


@pytest.fixture
def fixed_clock():
    """Clock frozen at day 460 since the epoch."""
    return lambda: at_day(460)
