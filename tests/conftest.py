from __future__ import annotations

import pytest

from fakes import FakeLauncher


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()
