"""Root conftest for all tests - setup sys.path and shared process state."""

import sys
from pathlib import Path

import pytest

# Add src/ to sys.path so tests run without an editable install
src_root = Path(__file__).parent.parent / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from procboot.config.store import reset_property_store  # noqa: E402
from procboot.system import LoggerFactory  # noqa: E402


@pytest.fixture(autouse=True)
def reset_process_state():
    """Give every test fresh logging and an empty process-wide property store."""
    LoggerFactory.reset()
    reset_property_store()
    yield
    LoggerFactory.reset()
    reset_property_store()
