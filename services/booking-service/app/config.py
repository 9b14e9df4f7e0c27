import os

SERVICE_NAME = "booking-service"

BOOKING_DB = os.getenv("BOOKING_DB")
RABBIT_URL = os.getenv("RABBIT_URL")  # optional; events are dropped when unset
REDIS_URL = os.getenv("REDIS_URL")  # optional; idempotency + rejection tracking off when unset

USER_SERVICE_URL = os.getenv("USER_SERVICE_URL") or "http://user-service:8000"
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT") or "2.0")

# ---- Pricing ----
DISTANCE_RATE_PER_KM = float(os.getenv("DISTANCE_RATE_PER_KM") or "10")

# ---- Scheduler sweep ----
EXPIRY_GRACE_MINUTES = int(os.getenv("EXPIRY_GRACE_MINUTES") or "15")
SEARCH_TIMEOUT_HOURS = int(os.getenv("SEARCH_TIMEOUT_HOURS") or "6")
SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS") or "60")
# urgent admin alerts for unmatched requests, in hours before start (0 = at start)
ADMIN_ALERT_HOURS = (2, 1, 0)
DELAY_COMPENSATION_MINUTES = int(os.getenv("DELAY_COMPENSATION_MINUTES") or "20")
DELAY_COMPENSATION_RATE = float(os.getenv("DELAY_COMPENSATION_RATE") or "0.05")

IDEMPOTENCY_TTL_SECONDS = int(os.getenv("IDEMPOTENCY_TTL_SECONDS") or "86400")
REJECTION_WINDOW_SECONDS = 24 * 60 * 60
REJECTION_ALERT_THRESHOLD = 3

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
