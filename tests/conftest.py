"""Shared test fixtures."""

from pathlib import Path

import pytest

from tests.fakes import FakeTransport, bms_responder


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    """Path for a temporary cache file."""
    return tmp_path / "state" / "snapshot.json"


@pytest.fixture
def transport() -> FakeTransport:
    """Fake transport answering like a healthy BMS."""
    return FakeTransport(responder=bms_responder)
