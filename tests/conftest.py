import logging

import pytest


@pytest.fixture(autouse=True)
def _watchtower_debug_logging(caplog):
    """Capture watchtower debug logs so failures show what the loop did."""
    caplog.set_level(logging.DEBUG, logger="watchtower")
