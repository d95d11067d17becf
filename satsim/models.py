from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Column, JSON

# collection names
SATELLITES = "satellites"
TELEMETRY = "telemetry"
COMMANDS = "commands"
EVENTS = "events"

# satellite status
ONLINE = "Online"
OFFLINE = "Offline"

# command status, in lifecycle order
PENDING = "Pending"
EXECUTING = "Executing"
COMPLETED = "Completed"
FAILED = "Failed"
TERMINAL = (COMPLETED, FAILED)

DATA_SOURCE = "simulated"

class Collection(SQLModel, table=True):
    """One row per named collection; ``data`` holds the whole record list."""
    name: str = Field(primary_key=True)
    data: list = Field(sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
