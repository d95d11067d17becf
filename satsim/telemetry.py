"""Synthetic telemetry generation.

Every sample is a bounded random walk from the device's newest sample:
temperature, power and pitch carry over between samples, the remaining
channels are drawn fresh each time.
"""
from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .models import DATA_SOURCE, ONLINE, SATELLITES, TELEMETRY
from .settings import settings
from .store import CollectionStore, Record, next_id
from .utils import format_ts, utcnow

log = logging.getLogger("telemetry")

DEFAULTS = {"temperature": 25.0, "powerLevel": 100.0, "signalStrength": 85.0, "pitchAngle": 0.0}

TEMP_RANGE = (-20.0, 60.0)
PITCH_RANGE = (-90.0, 90.0)
POWER_FLOOR = 10.0

def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))

def latest_sample(records: List[Record], satellite_id: str) -> Optional[Record]:
    """Newest sample for a device by collect time; later entries win ties."""
    best = None
    for r in records:
        if r.get("satelliteId") != satellite_id:
            continue
        if best is None or r.get("collectTime", "") >= best.get("collectTime", ""):
            best = r
    return best

def is_online(sat: Record) -> bool:
    return sat.get("status") == ONLINE and not sat.get("isDeleted")

class TelemetrySimulator:
    def __init__(
        self,
        store: CollectionStore,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        retention_hours: int = settings.telemetry_retention_hours,
        listener: Optional[Callable[[Record], Any]] = None,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock
        self.retention = timedelta(hours=retention_hours)
        self.listener = listener

    # ---------------- channel draws ----------------
    def _u(self, lo: float, hi: float) -> float:
        return self.rng.uniform(lo, hi)

    def quality(self) -> int:
        r = self.rng.random()
        return 3 if r > 0.9 else 2 if r > 0.8 else 1

    def _free_channels(self) -> Dict[str, float]:
        return {
            "rollAngle": round(self._u(-30, 30), 2),
            "yawAngle": round(self._u(-180, 180), 2),
            "solarPanelVoltage": round(28 + self._u(0, 2), 2),
            "batteryVoltage": round(24 + self._u(0, 1.5), 2),
            "transmissionPower": round(50 + self._u(0, 20), 2),
            "memoryUsage": round(30 + self._u(0, 50), 2),
            "cpuTemperature": round(40 + self._u(0, 20), 2),
        }

    def derive(self, satellite_id: str, last: Optional[Record], now: datetime) -> Record:
        """Next sample from ``last`` (or the defaults when there is none)."""
        base = DEFAULTS if last is None else {k: float(last.get(k, v)) for k, v in DEFAULTS.items()}

        temperature = clamp(round(base["temperature"] + self._u(-1, 1), 2), *TEMP_RANGE)

        power = base["powerLevel"]
        power = round(power - (1 if power > POWER_FLOOR else 0) + self._u(-0.25, 0.25), 2)
        power = max(POWER_FLOOR, clamp(power, 0.0, 100.0))

        pitch = clamp(round(base["pitchAngle"] + self._u(-5, 5), 1), *PITCH_RANGE)

        sample = {
            "satelliteId": satellite_id,
            "temperature": temperature,
            "powerLevel": power,
            "signalStrength": round(self._u(70, 95), 2),
            "pitchAngle": pitch,
        }
        sample.update(self._free_channels())
        sample.update({
            "collectTime": format_ts(now),
            "dataSource": DATA_SOURCE,
            "dataQuality": self.quality(),
        })
        return sample

    def prune(self, records: List[Record], now: datetime) -> List[Record]:
        cutoff = format_ts(now - self.retention)
        # canonical timestamps compare correctly as text
        return [r for r in records if r.get("collectTime", "") >= cutoff]

    def _commit(self, records: List[Record], new: List[Record], now: datetime) -> None:
        start = next_id(records)
        for offset, sample in enumerate(new):
            sample["id"] = start + offset
            records.append(sample)
        records[:] = self.prune(records, now)

    def _notify(self, samples: List[Record]) -> None:
        if self.listener is None:
            return
        for sample in samples:
            self.listener(sample)

    # ---------------- public operations ----------------
    def generate_sample(self, satellite_id: str) -> Record:
        now = self.clock()
        with self.store.mutate(TELEMETRY) as records:
            sample = self.derive(satellite_id, latest_sample(records, satellite_id), now)
            self._commit(records, [sample], now)
        self._notify([sample])
        return sample

    def append_baseline(self, satellite_id: str, pitch: float) -> Record:
        """Fresh reading with a fixed pitch, independent of earlier samples."""
        now = self.clock()
        sample = self.derive(satellite_id, None, now)
        sample["pitchAngle"] = round(float(pitch), 1)
        with self.store.mutate(TELEMETRY) as records:
            self._commit(records, [sample], now)
        self._notify([sample])
        return sample

    def tick(self) -> int:
        """One sample for every online device, persisted in a single write."""
        online = [s["satelliteId"] for s in self.store.read(SATELLITES) if is_online(s)]
        now = self.clock()
        with self.store.mutate(TELEMETRY) as records:
            new = [self.derive(sid, latest_sample(records, sid), now) for sid in online]
            self._commit(records, new, now)
        self._notify(new)
        log.debug("telemetry tick: %d samples, %d retained", len(new), len(records))
        return len(new)

    def backfill(self, satellite_id: str, hours: int = settings.backfill_hours,
                 interval_seconds: int = settings.backfill_interval) -> int:
        """Seed history for a newly provisioned device, walking back from now."""
        now = self.clock()
        n = int(hours * 3600 / interval_seconds)
        if n <= 0:
            return 0
        step = 80.0 / n
        samples = []
        for i in reversed(range(n)):
            sample = {
                "satelliteId": satellite_id,
                "temperature": round(clamp(25 + math.sin(i) * 15 + self._u(0, 5), *TEMP_RANGE), 2),
                "powerLevel": round(clamp(100 - i * step + self._u(0, 10), 20.0, 100.0), 2),
                "signalStrength": round(80 + self._u(0, 15), 2),
                "pitchAngle": round(self._u(-90, 90), 1),
            }
            sample.update(self._free_channels())
            sample.update({
                "collectTime": format_ts(now - timedelta(seconds=i * interval_seconds)),
                "dataSource": DATA_SOURCE,
                "dataQuality": self.quality(),
            })
            samples.append(sample)
        with self.store.mutate(TELEMETRY) as records:
            self._commit(records, samples, now)
        log.info("backfilled %d samples for %s", len(samples), satellite_id)
        return len(samples)
