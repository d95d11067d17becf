"""Tests for TelemetrySimulator: random-walk bounds, retention and backfill."""

from __future__ import annotations

import random
from datetime import timedelta

from satsim.models import OFFLINE, SATELLITES, TELEMETRY
from satsim.telemetry import TelemetrySimulator, latest_sample
from satsim.utils import format_ts
from tests.conftest import make_satellite


def _sample(sat_id, collect_time, **values):
    base = {"satelliteId": sat_id, "temperature": 25.0, "powerLevel": 100.0,
            "signalStrength": 85.0, "pitchAngle": 0.0, "collectTime": collect_time}
    base.update(values)
    return base


class TestGenerateSample:
    def test_defaults_without_history(self, simulator, clock):
        s = simulator.generate_sample("SAT001")
        assert 24.0 <= s["temperature"] <= 26.0
        assert 98.75 <= s["powerLevel"] <= 99.25
        assert 70.0 <= s["signalStrength"] <= 95.0
        assert -5.0 <= s["pitchAngle"] <= 5.0
        assert s["dataQuality"] in (1, 2, 3)
        assert s["dataSource"] == "simulated"
        assert s["collectTime"] == format_ts(clock.now)

    def test_free_channels_in_range(self, simulator):
        for _ in range(50):
            s = simulator.generate_sample("SAT001")
            assert -30 <= s["rollAngle"] <= 30
            assert -180 <= s["yawAngle"] <= 180
            assert 28 <= s["solarPanelVoltage"] <= 30
            assert 24 <= s["batteryVoltage"] <= 25.5
            assert 50 <= s["transmissionPower"] <= 70
            assert 30 <= s["memoryUsage"] <= 80
            assert 40 <= s["cpuTemperature"] <= 60

    def test_sample_is_persisted_with_id(self, simulator, store):
        first = simulator.generate_sample("SAT001")
        second = simulator.generate_sample("SAT001")
        rows = store.read(TELEMETRY)
        assert [r["id"] for r in rows] == [first["id"], second["id"]] == [1, 2]

    def test_walk_continues_from_latest(self, simulator, store, clock):
        store.write(TELEMETRY, [
            _sample("SAT001", format_ts(clock.now - timedelta(minutes=5)), pitchAngle=-60.0),
            _sample("SAT001", format_ts(clock.now - timedelta(minutes=1)), pitchAngle=80.0,
                    temperature=40.0),
        ])
        s = simulator.generate_sample("SAT001")
        assert 75.0 <= s["pitchAngle"] <= 85.0
        assert 39.0 <= s["temperature"] <= 41.0

    def test_walk_bounds_over_many_steps(self, simulator):
        prev = simulator.generate_sample("SAT001")
        for _ in range(300):
            s = simulator.generate_sample("SAT001")
            assert abs(s["temperature"] - prev["temperature"]) <= 1.01
            assert -20 <= s["temperature"] <= 60
            assert -90 <= s["pitchAngle"] <= 90
            assert 10 <= s["powerLevel"] <= 100
            assert s["powerLevel"] <= prev["powerLevel"] + 0.25
            prev = s

    def test_power_never_reported_below_floor(self, simulator, store, clock):
        store.write(TELEMETRY, [_sample("SAT001", format_ts(clock.now), powerLevel=10.1)])
        assert simulator.generate_sample("SAT001")["powerLevel"] == 10.0
        for _ in range(20):
            assert simulator.generate_sample("SAT001")["powerLevel"] >= 10.0

    def test_temperature_clamped_at_ceiling(self, simulator, store, clock):
        store.write(TELEMETRY, [_sample("SAT001", format_ts(clock.now), temperature=59.8)])
        for _ in range(30):
            assert simulator.generate_sample("SAT001")["temperature"] <= 60.0

    def test_quality_distribution(self, store, clock):
        sim = TelemetrySimulator(store, rng=random.Random(3), clock=clock)
        grades = [sim.quality() for _ in range(5000)]
        assert 0.77 <= grades.count(1) / len(grades) <= 0.83
        assert 0.08 <= grades.count(2) / len(grades) <= 0.12
        assert 0.08 <= grades.count(3) / len(grades) <= 0.12

    def test_listener_notified(self, store, clock):
        seen = []
        sim = TelemetrySimulator(store, rng=random.Random(1), clock=clock, listener=seen.append)
        sample = sim.generate_sample("SAT001")
        assert seen == [sample]


class TestTick:
    def test_only_online_active_devices(self, simulator, store):
        store.write(SATELLITES, [
            make_satellite("SAT001"),
            make_satellite("SAT002", status=OFFLINE),
            make_satellite("SAT003", deleted=1),
        ])
        assert simulator.tick() == 1
        assert {r["satelliteId"] for r in store.read(TELEMETRY)} == {"SAT001"}

    def test_no_devices_is_noop(self, simulator, store):
        assert simulator.tick() == 0
        assert store.read(TELEMETRY) == []

    def test_one_sample_per_device_per_tick(self, simulator, store, clock):
        store.write(SATELLITES, [make_satellite("SAT001"), make_satellite("SAT002")])
        for _ in range(3):
            simulator.tick()
            clock.advance(5)
        rows = store.read(TELEMETRY)
        assert len(rows) == 6
        assert sum(1 for r in rows if r["satelliteId"] == "SAT002") == 3

    def test_retention_prunes_old_samples(self, simulator, store, clock):
        store.write(SATELLITES, [make_satellite("SAT001")])
        store.write(TELEMETRY, [
            _sample("SAT009", format_ts(clock.now - timedelta(hours=25))),
            _sample("SAT009", format_ts(clock.now - timedelta(hours=24))),
            _sample("SAT001", format_ts(clock.now - timedelta(hours=23))),
        ])
        simulator.tick()
        cutoff = format_ts(clock.now - timedelta(hours=24))
        rows = store.read(TELEMETRY)
        assert len(rows) == 3
        assert all(r["collectTime"] >= cutoff for r in rows)

    def test_retention_holds_as_time_moves(self, simulator, store, clock):
        store.write(SATELLITES, [make_satellite("SAT001")])
        for _ in range(5):
            simulator.tick()
            clock.advance(10 * 3600)
        simulator.tick()
        cutoff = format_ts(clock.now - timedelta(hours=24))
        assert all(r["collectTime"] >= cutoff for r in store.read(TELEMETRY))
        assert len(store.read(TELEMETRY)) == 3


class TestBaseline:
    def test_pitch_is_fixed_and_rounded(self, simulator, store, clock):
        store.write(TELEMETRY, [_sample("SAT001", format_ts(clock.now), temperature=55.0)])
        s = simulator.append_baseline("SAT001", 12.34)
        assert s["pitchAngle"] == 12.3
        # fresh reading, not a continuation of the 55C history
        assert 24.0 <= s["temperature"] <= 26.0
        assert latest_sample(store.read(TELEMETRY), "SAT001")["id"] == s["id"]


class TestBackfill:
    def test_hourly_day(self, simulator, store, clock):
        assert simulator.backfill("SAT001", hours=24, interval_seconds=3600) == 24
        rows = sorted(store.read(TELEMETRY), key=lambda r: r["collectTime"])
        assert len(rows) == 24
        assert rows[0]["collectTime"] == format_ts(clock.now - timedelta(hours=23))
        assert rows[-1]["collectTime"] == format_ts(clock.now)
        assert rows[0]["powerLevel"] <= 34
        assert rows[-1]["powerLevel"] == 100
        assert all(-20 <= r["temperature"] <= 60 for r in rows)

    def test_sample_count_follows_interval(self, simulator, store):
        assert simulator.backfill("SAT001", hours=1, interval_seconds=5) == 720
        assert len(store.read(TELEMETRY)) == 720

    def test_latest_backfilled_sample_seeds_the_walk(self, simulator, store, clock):
        simulator.backfill("SAT001", hours=2, interval_seconds=3600)
        newest = latest_sample(store.read(TELEMETRY), "SAT001")
        assert newest["collectTime"] == format_ts(clock.now)
        s = simulator.generate_sample("SAT001")
        assert abs(s["temperature"] - newest["temperature"]) <= 1.01
