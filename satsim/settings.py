from pydantic import BaseModel
import os

class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./satsim.db")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "http://localhost:4173,http://localhost:5173").split(",")

    # background simulation (seconds)
    simulator_enabled: bool = os.getenv("SIMULATOR_ENABLED", "1") == "1"
    telemetry_period: float = float(os.getenv("TELEMETRY_PERIOD", "5"))
    command_period: float = float(os.getenv("COMMAND_PERIOD", "2"))
    command_delay: float = float(os.getenv("COMMAND_DELAY", "3"))

    telemetry_retention_hours: int = int(os.getenv("TELEMETRY_RETENTION_HOURS", "24"))
    backfill_hours: int = int(os.getenv("BACKFILL_HOURS", "24"))
    backfill_interval: int = int(os.getenv("BACKFILL_INTERVAL", "3600"))

    seed_demo_data: bool = os.getenv("SEED_DEMO_DATA", "1") == "1"

settings = Settings()
