import logging

from .commands import CommandEffect
from .models import COMMANDS, COMPLETED, EVENTS, OFFLINE, ONLINE, SATELLITES, TELEMETRY
from .store import CollectionStore
from .telemetry import TelemetrySimulator, is_online

log = logging.getLogger("seed")

DEFAULT_SATELLITES = [
    {
        "id": 1,
        "satelliteId": "SAT001",
        "satelliteName": "Skypatrol-1",
        "satelliteType": "LEO remote sensing",
        "launchTime": "2023-01-15",
        "orbitInfo": "500km SSO",
        "status": ONLINE,
        "uplinkFrequency": "2200 MHz",
        "downlinkFrequency": "1800 MHz",
        "payloadInfo": "Multispectral camera, 5m resolution, 60km swath",
        "designLife": 36,
        "operator": "Fleet Operations",
        "createTime": "2023-01-15 10:00:00",
        "updateTime": "2023-10-20 14:30:00",
        "isDeleted": 0,
    },
    {
        "id": 2,
        "satelliteId": "SAT002",
        "satelliteName": "Skypatrol-2",
        "satelliteType": "Communications test",
        "launchTime": "2024-06-20",
        "orbitInfo": "700km LEO",
        "status": OFFLINE,
        "uplinkFrequency": "2250 MHz",
        "downlinkFrequency": "1850 MHz",
        "payloadInfo": "Communications test payload",
        "designLife": 48,
        "operator": "Fleet Operations",
        "createTime": "2024-06-20 09:00:00",
        "updateTime": "2024-06-20 09:00:00",
        "isDeleted": 0,
    },
]

DEFAULT_COMMANDS = [
    {
        "id": 1,
        "satelliteId": "SAT001",
        "commandType": "Attitude adjustment",
        "commandCode": "ATT_ADJ_001",
        "commandName": "Adjust pitch angle",
        "commandContent": '{"angle": 30.5, "duration": 3000}',
        "effect": CommandEffect.ATTITUDE.value,
        "priority": 1,
        "commandStatus": COMPLETED,
        "sendTime": "2023-10-20 10:30:00",
        "executeTime": "2023-10-20 10:30:03",
        "completeTime": "2023-10-20 10:33:00",
        "resultCode": "SUCCESS",
        "resultMessage": "executed successfully",
        "executionDuration": 3000,
        "operatorName": "operator",
    },
]

DEFAULT_EVENTS = [
    {
        "id": 1,
        "satelliteId": "SAT001",
        "eventType": "Telemetry anomaly",
        "eventLevel": "WARN",
        "eventCode": "TM_ANOMALY_001",
        "eventTitle": "Temperature above threshold",
        "eventDetail": "SAT001 temperature reached 45.2C, above the 40C warning level",
        "occurTime": "2023-10-20 09:45:00",
        "isHandled": 1,
        "handlerName": "operator",
        "handleTime": "2023-10-20 10:00:00",
    },
]

def seed_demo_data(store: CollectionStore, simulator: TelemetrySimulator) -> None:
    """Install the demo fleet for any collection that does not exist yet."""
    for name, records in ((SATELLITES, DEFAULT_SATELLITES),
                          (COMMANDS, DEFAULT_COMMANDS),
                          (EVENTS, DEFAULT_EVENTS)):
        if not store.exists(name):
            store.write(name, [dict(r) for r in records])
            log.info("seeded %s (%d records)", name, len(records))

    if not store.exists(TELEMETRY):
        for sat in store.read(SATELLITES):
            if is_online(sat):
                simulator.backfill(sat["satelliteId"])
