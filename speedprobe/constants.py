"""
Shared constants used across all speedprobe modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

OOKLA_SERVERS_URL = "https://www.speedtest.net/api/js/servers"

DEFAULT_ENDPOINTS = [
    {"name": "Google", "url": "https://www.google.com", "location": "Global", "region": "US"},
    {"name": "Cloudflare", "url": "https://www.cloudflare.com", "location": "Global", "region": "US"},
    {"name": "Amazon", "url": "https://www.amazon.com", "location": "Global", "region": "US"},
    {"name": "Microsoft", "url": "https://www.microsoft.com", "location": "Global", "region": "US"},
    {"name": "Apple", "url": "https://www.apple.com", "location": "Global", "region": "US"},
]

# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

DEFAULT_PROBE_TIMEOUT = 10.0     # seconds per probe
MIN_PROBE_TIMEOUT = 0.1
MAX_PROBE_TIMEOUT = 120.0
WS_CLOSE_TIMEOUT = 2.0
CLIENT_ERROR_STATUS = 400        # first status that counts as unreachable

# Scoring for the automatic criterion
UNKNOWN_DISTANCE_KM = 1000.0
UNKNOWN_LATENCY_MS = 100.0

# ---------------------------------------------------------------------------
# Measurement buffer
# ---------------------------------------------------------------------------

DOWNLOAD_CAPACITY = 100
UPLOAD_CAPACITY = 100
PING_CAPACITY = 50

DOWNLOAD_DEFAULT_MAX = 100.0     # chart axis scale when empty
UPLOAD_DEFAULT_MAX = 50.0
PING_DEFAULT_MAX = 100.0

# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

HISTORY_CAPACITY = 100
HISTORY_STORAGE_KEY = "speedtest_history"

# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

DEFAULT_LOW_SPEED_THRESHOLD = 5.0          # Mbps
PERMISSION_REQUEST_INTERVAL = 24 * 60 * 60  # seconds
