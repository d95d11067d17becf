"""Whole-collection record store.

Each collection (``satellites``, ``telemetry``, ``commands``, ``events``) is a
single JSON document. There is no per-record update: callers read the whole
list, change it and write it back. ``mutate`` wraps that cycle in a
per-collection lock so two writers can never interleave and drop each
other's changes. When more than one collection is held at once, acquire them
in the order commands -> satellites -> telemetry.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterator, List

from sqlalchemy.engine import Engine

from .db import engine as default_engine, get_session
from .models import Collection

log = logging.getLogger("store")

Record = Dict[str, Any]

class CollectionStore:
    def __init__(self, bind: Engine = default_engine) -> None:
        self.bind = bind
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()

    def _lock(self, name: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = Lock()
            return lock

    def exists(self, name: str) -> bool:
        with get_session(self.bind) as s:
            return s.get(Collection, name) is not None

    def read(self, name: str) -> List[Record]:
        with get_session(self.bind) as s:
            row = s.get(Collection, name)
            return list(row.data or []) if row else []

    def _save(self, name: str, records: List[Record]) -> None:
        with get_session(self.bind) as s:
            row = s.get(Collection, name)
            if row is None:
                row = Collection(name=name, data=list(records))
            else:
                row.data = list(records)
                row.updated_at = datetime.now(timezone.utc)
            s.add(row)
            s.commit()
        log.debug("wrote %s (%d records)", name, len(records))

    def write(self, name: str, records: List[Record]) -> None:
        with self._lock(name):
            self._save(name, records)

    @contextmanager
    def mutate(self, name: str) -> Iterator[List[Record]]:
        """Serialized read-modify-write of one collection.

        The yielded list is written back only if the block exits cleanly.
        """
        with self._lock(name):
            records = self.read(name)
            yield records
            self._save(name, records)

def next_id(records: List[Record]) -> int:
    return max((int(r.get("id") or 0) for r in records), default=0) + 1
