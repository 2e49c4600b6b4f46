"""
Shared fixtures for the tracking tests.
"""

import pytest

from poses import EventRecorder


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
