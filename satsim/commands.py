"""Command lifecycle: Pending -> Executing -> Completed | Failed.

``tick`` picks up every pending command as one batch and hands the batch to
a delayed completion step. ``complete_batch`` applies each command's effect
and records the terminal status; a failure in one command never stops the
rest of the batch.
"""
from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .models import (
    COMMANDS, COMPLETED, EXECUTING, FAILED, OFFLINE, ONLINE, PENDING, SATELLITES,
)
from .settings import settings
from .store import CollectionStore, Record, next_id
from .telemetry import TelemetrySimulator
from .utils import format_ts, parse_ts, utcnow

log = logging.getLogger("commands")

class CommandEffect(str, Enum):
    ATTITUDE = "attitude"
    SLEEP = "sleep"
    WAKE = "wake"
    NONE = "none"

# checked in order; the first match wins
_EFFECT_PATTERNS = [
    (CommandEffect.WAKE, re.compile(r"wake|唤醒", re.I)),
    (CommandEffect.SLEEP, re.compile(r"sleep|hibernat|休眠", re.I)),
    (CommandEffect.ATTITUDE, re.compile(r"attitude|姿态|调整", re.I)),
]

def resolve_effect(*texts: Optional[str]) -> CommandEffect:
    text = " ".join(t for t in texts if t)
    for effect, pattern in _EFFECT_PATTERNS:
        if pattern.search(text):
            return effect
    return CommandEffect.NONE

def effect_of(cmd: Record) -> CommandEffect:
    try:
        return CommandEffect(cmd["effect"])
    except (KeyError, ValueError):
        return resolve_effect(cmd.get("commandType"), cmd.get("commandName"))

def parse_content(content: Any) -> Dict[str, Any]:
    if isinstance(content, dict):
        return content
    doc = json.loads(content or "{}")
    if not isinstance(doc, dict):
        raise ValueError("command content must be a JSON object")
    return doc

ANGLE_RANGE = (-90.0, 90.0)

def check_angle(value: Any) -> float:
    try:
        angle = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"angle must be a number, got {value!r}")
    lo, hi = ANGLE_RANGE
    if not math.isfinite(angle) or not lo <= angle <= hi:
        raise ValueError(f"angle {value!r} outside [{lo:g}, {hi:g}]")
    return angle

def validate_content(effect: CommandEffect, content: Any) -> None:
    """Reject attitude payloads whose angle can never be applied."""
    if effect is not CommandEffect.ATTITUDE:
        return
    try:
        doc = parse_content(content)
    except ValueError:
        # unparseable text stays opaque and fails at execution
        return
    if doc.get("angle") is not None:
        check_angle(doc["angle"])

class TargetNotFound(Exception):
    pass

def new_command(
    commands: List[Record],
    satellite_id: str,
    command_type: str,
    command_name: str,
    content: Any = None,
    command_code: Optional[str] = None,
    priority: int = 1,
    operator: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Record:
    """Build a Pending command record; the effect is resolved here, once."""
    if content is None:
        content = "{}"
    elif not isinstance(content, str):
        content = json.dumps(content, ensure_ascii=False)
    cmd = {
        "id": next_id(commands),
        "satelliteId": satellite_id,
        "commandType": command_type,
        "commandCode": command_code,
        "commandName": command_name,
        "commandContent": content,
        "effect": resolve_effect(command_type, command_name).value,
        "priority": priority,
        "commandStatus": PENDING,
        "sendTime": format_ts(now or utcnow()),
        "executeTime": None,
        "completeTime": None,
        "resultCode": None,
        "resultMessage": None,
        "executionDuration": None,
        "operatorName": operator or "unknown",
    }
    commands.append(cmd)
    return cmd

class CommandProcessor:
    def __init__(
        self,
        store: CollectionStore,
        simulator: TelemetrySimulator,
        schedule_later: Optional[Callable[[float, Callable[[], Any]], Any]] = None,
        delay: float = settings.command_delay,
        clock: Callable[[], datetime] = utcnow,
        listener: Optional[Callable[[Record], Any]] = None,
    ) -> None:
        self.store = store
        self.simulator = simulator
        self.schedule_later = schedule_later
        self.delay = delay
        self.clock = clock
        self.listener = listener

    def _notify(self, cmds: List[Record]) -> None:
        if self.listener is None:
            return
        for cmd in cmds:
            self.listener(cmd)

    def tick(self) -> List[int]:
        """Move all pending commands to Executing and schedule their completion."""
        if not any(c.get("commandStatus") == PENDING for c in self.store.read(COMMANDS)):
            return []
        with self.store.mutate(COMMANDS) as commands:
            stamp = format_ts(self.clock())
            batch = [c for c in commands if c.get("commandStatus") == PENDING]
            for cmd in batch:
                cmd["commandStatus"] = EXECUTING
                cmd["executeTime"] = stamp
        ids = [c["id"] for c in batch]
        if not ids:
            return ids
        log.info("picked up %d command(s): %s", len(ids), ids)
        self._notify(batch)
        if self.schedule_later is not None:
            self.schedule_later(self.delay, lambda: self.complete_batch(ids))
        return ids

    def complete_batch(self, ids: List[int]) -> List[Record]:
        """Apply and resolve the commands captured by one ``tick``."""
        wanted = set(ids)
        done: List[Record] = []
        with self.store.mutate(COMMANDS) as commands, self.store.mutate(SATELLITES) as satellites:
            now = self.clock()
            by_sat = {s.get("satelliteId"): s for s in satellites if not s.get("isDeleted")}
            for cmd in commands:
                if cmd.get("id") not in wanted or cmd.get("commandStatus") != EXECUTING:
                    continue
                try:
                    self._apply(cmd, by_sat, now)
                except json.JSONDecodeError as e:
                    self._resolve(cmd, FAILED, "ERROR", f"invalid command content: {e}", now)
                except TargetNotFound as e:
                    self._resolve(cmd, FAILED, "NOT_FOUND", str(e), now)
                except Exception as e:
                    log.warning("command %s failed: %s", cmd.get("id"), e)
                    self._resolve(cmd, FAILED, "ERROR", str(e), now)
                else:
                    self._resolve(cmd, COMPLETED, "SUCCESS", "executed successfully", now)
                done.append(cmd)
        for cmd in done:
            log.info("command %s (%s) -> %s %s", cmd["id"], cmd.get("commandName"),
                     cmd["commandStatus"], cmd["resultCode"])
        self._notify(done)
        return done

    def _apply(self, cmd: Record, by_sat: Dict[str, Record], now: datetime) -> None:
        content = parse_content(cmd.get("commandContent"))
        sat_id = cmd.get("satelliteId")
        sat = by_sat.get(sat_id)
        if sat is None:
            raise TargetNotFound(f"target satellite {sat_id} not found")

        effect = effect_of(cmd)
        if effect is CommandEffect.ATTITUDE:
            if content.get("angle") is not None:
                self.simulator.append_baseline(sat_id, check_angle(content["angle"]))
        elif effect is CommandEffect.SLEEP:
            sat["status"] = OFFLINE
            sat["updateTime"] = format_ts(now)
        elif effect is CommandEffect.WAKE:
            self.simulator.generate_sample(sat_id)
            sat["status"] = ONLINE
            sat["updateTime"] = format_ts(now)

    def _resolve(self, cmd: Record, status: str, code: str, message: str, now: datetime) -> None:
        cmd["commandStatus"] = status
        cmd["completeTime"] = format_ts(now)
        cmd["resultCode"] = code
        cmd["resultMessage"] = message
        if cmd.get("executeTime"):
            delta = now - parse_ts(cmd["executeTime"])
            cmd["executionDuration"] = max(0, int(delta.total_seconds() * 1000))
