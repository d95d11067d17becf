from datetime import datetime, timezone

from dateutil import parser as dtparser
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .settings import settings

TS_FORMAT = "%Y-%m-%d %H:%M:%S"

def add_cors(app: FastAPI):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)

def format_ts(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.strftime(TS_FORMAT)

def parse_ts(ts: str) -> datetime:
    """Parse a stored or caller-supplied timestamp into naive UTC."""
    dt = dtparser.parse(ts)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def compact_ts(ts: str) -> str:
    # used in export filenames, e.g. 20250110_0930
    return parse_ts(ts).strftime("%Y%m%d_%H%M")
