import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/backhouse_db")

# Application Metadata
PROJECT_NAME = "Backhouse Availability Engine"
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Low-Stock Monitor Configuration
LOW_STOCK_MONITOR_ENABLED = os.getenv("LOW_STOCK_MONITOR_ENABLED", "true").lower() in ("1", "true", "yes")
LOW_STOCK_CHECK_INTERVAL = int(os.getenv("LOW_STOCK_CHECK_INTERVAL", 5 * 60))  # Sweep every N seconds
LOW_STOCK_DEDUP_WINDOW = int(os.getenv("LOW_STOCK_DEDUP_WINDOW", 60 * 60))  # One alert per item per window
NOTIFICATION_TTL = int(os.getenv("NOTIFICATION_TTL", 24 * 60 * 60))  # Alert expiry
ALERT_ROLES = [r.strip() for r in os.getenv("ALERT_ROLES", "manager,chef,owner").split(",") if r.strip()]

# Broadcast Configuration
BROADCAST_TIMEOUT = float(os.getenv("BROADCAST_TIMEOUT", 2))  # Max seconds a single publish may take
