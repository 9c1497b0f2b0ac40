"""Central configuration — server, station defaults, push channel limits."""
from pathlib import Path
import os

from dotenv import load_dotenv

# ── Filesystem paths ──────────────────────────────────────────────────────────
ROOT = Path(__file__).parent.parent

load_dotenv(ROOT / ".env")

API_VERSION = "1.0.0"

# ── Server ────────────────────────────────────────────────────────────────────
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

# ── Station defaults (state before the device reports anything) ───────────────
STATION_ID = os.environ.get("STATION_ID", "ESP32_001")
STATION_NAME = os.environ.get("STATION_NAME", "VoltWay Station")

# ── Push channel ──────────────────────────────────────────────────────────────
SUBSCRIBER_QUEUE_SIZE = int(os.environ.get("SUBSCRIBER_QUEUE_SIZE", "256"))
SUBSCRIBER_OVERFLOW_POLICY = os.environ.get("SUBSCRIBER_OVERFLOW_POLICY", "disconnect")  # | "drop_oldest"
OVERFLOW_POLICIES = ("disconnect", "drop_oldest")
WS_KEEPALIVE_SECONDS = float(os.environ.get("WS_KEEPALIVE_SECONDS", "30"))

# ── Stale-station watchdog ────────────────────────────────────────────────────
STATION_STALE_AFTER_SECONDS = float(os.environ.get("STATION_STALE_AFTER_SECONDS", "0"))  # opt-in; 0 disables
STATION_STALE_CHECK_SECONDS = float(os.environ.get("STATION_STALE_CHECK_SECONDS", "30"))
