import asyncio
import logging
import math
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Literal

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException, Query
from fastapi.responses import Response

from .commands import CommandProcessor, new_command, resolve_effect, validate_content
from .db import init_db
from .export import records_csv, records_json, telemetry_csv, telemetry_filename
from .models import COMMANDS, EVENTS, SATELLITES, TELEMETRY
from .scheduler import Scheduler
from .schemas import (
    CommandRequest, CommandResponse, ExistsOut, Message, Page, SatelliteIn, SatelliteUpdate,
)
from .seed import seed_demo_data
from .settings import settings
from .store import CollectionStore, next_id
from .telemetry import TelemetrySimulator, latest_sample
from .utils import add_cors, format_ts, parse_ts, utcnow
from .ws_manager import FeedManager

log = logging.getLogger("api")

app = FastAPI(title="Satsim API", version="0.1.0")
add_cors(app)

store = CollectionStore()
feed = FeedManager()
simulator = TelemetrySimulator(store, listener=lambda s: feed.publish("telemetry", s))
scheduler = Scheduler()
processor = CommandProcessor(
    store, simulator,
    schedule_later=scheduler.call_later,
    listener=lambda c: feed.publish("command", c),
)
scheduler.add_job("telemetry", settings.telemetry_period, simulator.tick)
scheduler.add_job("commands", settings.command_period, processor.tick)

_forwarder: asyncio.Task | None = None

@app.on_event("startup")
async def on_startup():
    global _forwarder
    logging.basicConfig(level=logging.INFO)
    init_db(store.bind)
    if settings.seed_demo_data:
        seed_demo_data(store, simulator)
    if settings.simulator_enabled:
        await scheduler.start()
    _forwarder = asyncio.create_task(feed.forward())

@app.on_event("shutdown")
async def on_shutdown():
    global _forwarder
    await scheduler.stop()
    await scheduler.drain()
    if _forwarder is not None:
        _forwarder.cancel()
        try:
            await _forwarder
        except asyncio.CancelledError:
            pass
        _forwarder = None

def _paginate(rows: List[Dict[str, Any]], page: int, size: int) -> Page:
    start = (page - 1) * size
    return Page(list=rows[start:start + size], total=len(rows), page=page, size=size,
                totalPages=math.ceil(len(rows) / size))

def _active_satellites() -> List[Dict[str, Any]]:
    return [s for s in store.read(SATELLITES) if not s.get("isDeleted")]

def _filter_satellites(satellite_id: str | None, satellite_name: str | None,
                       satellite_type: str | None, status: str | None) -> List[Dict[str, Any]]:
    rows = _active_satellites()
    if satellite_id:
        rows = [s for s in rows if satellite_id in s.get("satelliteId", "")]
    if satellite_name:
        rows = [s for s in rows if satellite_name in (s.get("satelliteName") or "")]
    if satellite_type:
        rows = [s for s in rows if s.get("satelliteType") == satellite_type]
    if status:
        rows = [s for s in rows if s.get("status") == status]
    return rows

def _find(rows: List[Dict[str, Any]], satellite_id: str) -> Dict[str, Any]:
    for s in rows:
        if s.get("satelliteId") == satellite_id and not s.get("isDeleted"):
            return s
    raise HTTPException(status_code=404, detail="Satellite not found")

# ---------------- satellites ----------------
@app.get("/api/satellites", response_model=Page)
def list_satellites(satelliteId: str | None = None, satelliteName: str | None = None,
                    satelliteType: str | None = None, status: str | None = None,
                    page: int = Query(1, ge=1), size: int = Query(10, ge=1, le=500)):
    return _paginate(_filter_satellites(satelliteId, satelliteName, satelliteType, status), page, size)

@app.get("/api/satellites/{satellite_id}")
def get_satellite(satellite_id: str):
    return _find(store.read(SATELLITES), satellite_id)

@app.get("/api/satellites/{satellite_id}/exists", response_model=ExistsOut)
def satellite_exists(satellite_id: str):
    return ExistsOut(exists=any(s.get("satelliteId") == satellite_id for s in _active_satellites()))

@app.post("/api/satellites", response_model=Message, status_code=201)
def add_satellite(body: SatelliteIn):
    stamp = format_ts(utcnow())
    with store.mutate(SATELLITES) as rows:
        # ids of soft-deleted satellites stay reserved
        if any(s.get("satelliteId") == body.satelliteId for s in rows):
            raise HTTPException(status_code=409, detail="Satellite id already exists")
        rows.append({
            **body.model_dump(),
            "id": next_id(rows),
            "createTime": stamp,
            "updateTime": stamp,
            "isDeleted": 0,
        })
    if body.status == "Online":
        simulator.backfill(body.satelliteId)
    log.info("provisioned %s", body.satelliteId)
    return Message(message="Satellite added")

@app.put("/api/satellites/{satellite_id}", response_model=Message)
def update_satellite(satellite_id: str, body: SatelliteUpdate):
    with store.mutate(SATELLITES) as rows:
        sat = _find(rows, satellite_id)
        sat.update(body.model_dump(exclude_unset=True, exclude_none=True))
        sat["updateTime"] = format_ts(utcnow())
    return Message(message="Satellite updated")

@app.delete("/api/satellites/{satellite_id}", response_model=Message)
def delete_satellite(satellite_id: str):
    with store.mutate(SATELLITES) as rows:
        sat = _find(rows, satellite_id)
        sat["isDeleted"] = 1
        sat["updateTime"] = format_ts(utcnow())
    return Message(message="Satellite deleted")

# ---------------- telemetry ----------------
def _telemetry_between(satellite_id: str, start: str, end: str) -> List[Dict[str, Any]]:
    rows = [t for t in store.read(TELEMETRY)
            if t.get("satelliteId") == satellite_id and start <= t.get("collectTime", "") <= end]
    return sorted(rows, key=lambda t: t["collectTime"])

def _canonical(ts: str) -> str:
    try:
        return format_ts(parse_ts(ts))
    except (ValueError, OverflowError):
        raise HTTPException(status_code=422, detail=f"Invalid timestamp: {ts}")

@app.get("/api/telemetry")
def get_telemetry(satellite_id: str, hours: int = Query(24, ge=1)):
    now = utcnow()
    return _telemetry_between(satellite_id, format_ts(now - timedelta(hours=hours)), format_ts(now))

@app.get("/api/telemetry/range")
def get_telemetry_range(satellite_id: str, start: str, end: str):
    return _telemetry_between(satellite_id, _canonical(start), _canonical(end))

@app.get("/api/telemetry/export")
def export_telemetry(satellite_id: str, start: str, end: str):
    rows = _telemetry_between(satellite_id, _canonical(start), _canonical(end))
    if not rows:
        raise HTTPException(status_code=404, detail="No telemetry in range")
    filename = telemetry_filename(satellite_id, start, end)
    return Response(content=telemetry_csv(rows), media_type="text/csv",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})

# ---------------- commands ----------------
@app.get("/api/commands", response_model=Page)
def list_commands(satelliteId: str | None = None, status: str | None = None,
                  page: int = Query(1, ge=1), size: int = Query(10, ge=1, le=500)):
    rows = store.read(COMMANDS)
    if satelliteId:
        rows = [c for c in rows if c.get("satelliteId") == satelliteId]
    if status:
        rows = [c for c in rows if c.get("commandStatus") == status]
    return _paginate(rows, page, size)

@app.post("/api/commands", response_model=CommandResponse, status_code=201)
def post_command(cmd: CommandRequest):
    _find(store.read(SATELLITES), cmd.satelliteId)
    try:
        validate_content(resolve_effect(cmd.commandType, cmd.commandName), cmd.commandContent)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    with store.mutate(COMMANDS) as rows:
        rec = new_command(
            rows, cmd.satelliteId, cmd.commandType, cmd.commandName,
            content=cmd.commandContent, command_code=cmd.commandCode,
            priority=cmd.priority, operator=cmd.operatorName,
        )
    log.info("queued command %s (%s) for %s", rec["id"], rec["effect"], rec["satelliteId"])
    feed.publish("command", rec)
    return CommandResponse(status=rec["commandStatus"], commandId=rec["id"])

# ---------------- events / statistics / export ----------------
@app.get("/api/events")
def list_events(satelliteId: str | None = None, isHandled: int | None = None):
    rows = store.read(EVENTS)
    if satelliteId:
        rows = [e for e in rows if e.get("satelliteId") == satelliteId]
    if isHandled is not None:
        rows = [e for e in rows if e.get("isHandled") == isHandled]
    return sorted(rows, key=lambda e: e.get("occurTime", ""), reverse=True)

@app.get("/api/statistics")
def statistics():
    sats = _active_satellites()
    online = sum(1 for s in sats if s.get("status") == "Online")
    telemetry = store.read(TELEMETRY)
    latest = {}
    for s in sats:
        sample = latest_sample(telemetry, s["satelliteId"])
        if sample is not None:
            latest[s["satelliteId"]] = sample
    type_stats = Counter(s.get("satelliteType") for s in sats)
    year_stats = Counter(s["launchTime"][:4] for s in sats if s.get("launchTime"))
    return {
        "total": len(sats),
        "online": online,
        "offline": len(sats) - online,
        "types": len(type_stats),
        "typeStats": dict(type_stats),
        "yearStats": dict(year_stats),
        "latestTelemetry": latest,
    }

@app.get("/api/export")
def export_satellites(format: Literal["csv", "json"] = "csv", satelliteId: str | None = None,
                      satelliteName: str | None = None, satelliteType: str | None = None,
                      status: str | None = None):
    rows = _filter_satellites(satelliteId, satelliteName, satelliteType, status)
    body = records_csv(rows) if format == "csv" else records_json(rows)
    filename = f"satellites_{utcnow().strftime('%Y%m%d_%H%M%S')}.{format}"
    media = "text/csv" if format == "csv" else "application/json"
    return Response(content=body, media_type=media,
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})

@app.websocket("/ws/telemetry")
async def telemetry_ws(websocket: WebSocket):
    await feed.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await feed.disconnect(websocket)
