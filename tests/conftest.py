"""pytest configuration for satsim tests."""

import os
import random
import tempfile
from datetime import datetime, timedelta

# the app module builds its engine at import time
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mkdtemp()}/satsim-test.db")
os.environ.setdefault("SIMULATOR_ENABLED", "0")
os.environ.setdefault("SEED_DEMO_DATA", "0")

import pytest

from satsim.db import init_db, make_engine
from satsim.models import ONLINE
from satsim.store import CollectionStore
from satsim.telemetry import TelemetrySimulator


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def make_satellite(satellite_id: str, status: str = ONLINE, deleted: int = 0) -> dict:
    return {
        "satelliteId": satellite_id,
        "satelliteName": f"Test {satellite_id}",
        "satelliteType": "LEO remote sensing",
        "status": status,
        "updateTime": "2025-01-01 00:00:00",
        "isDeleted": deleted,
    }


@pytest.fixture()
def store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    return CollectionStore(engine)


@pytest.fixture()
def clock():
    return FixedClock(datetime(2025, 3, 1, 12, 0, 0))


@pytest.fixture()
def simulator(store, clock):
    return TelemetrySimulator(store, rng=random.Random(7), clock=clock)

