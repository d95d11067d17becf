from pydantic import BaseModel, Field
from typing import Any, Literal

SatelliteStatus = Literal["Online", "Offline"]

class SatelliteIn(BaseModel):
    satelliteId: str = Field(pattern=r"^SAT\d{3}$")
    satelliteName: str
    satelliteType: str
    launchTime: str | None = None
    orbitInfo: str | None = None
    status: SatelliteStatus = "Online"
    uplinkFrequency: str | None = None
    downlinkFrequency: str | None = None
    payloadInfo: str | None = None
    designLife: int | None = None
    operator: str | None = None

class SatelliteUpdate(BaseModel):
    satelliteName: str | None = None
    satelliteType: str | None = None
    launchTime: str | None = None
    orbitInfo: str | None = None
    status: SatelliteStatus | None = None
    uplinkFrequency: str | None = None
    downlinkFrequency: str | None = None
    payloadInfo: str | None = None
    designLife: int | None = None
    operator: str | None = None

class Page(BaseModel):
    list: list[dict[str, Any]]
    total: int
    page: int
    size: int
    totalPages: int

class Message(BaseModel):
    success: bool = True
    message: str

class ExistsOut(BaseModel):
    exists: bool

class CommandRequest(BaseModel):
    satelliteId: str
    commandType: str
    commandName: str
    commandCode: str | None = None
    # object payloads are serialized; text is stored as-is
    commandContent: dict[str, Any] | str | None = None
    priority: int = 1
    operatorName: str | None = None

class CommandResponse(BaseModel):
    status: str
    commandId: int
