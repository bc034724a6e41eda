"""
Candidate endpoints for probing.

An ``Endpoint`` is an immutable identity: a display name, the URL that gets
probed, and optional location metadata used by the distance-based selection
criteria.  Candidates come from the built-in defaults, from user config, or
from the speedtest.net server list (``fetch_ookla_endpoints``).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp

from .constants import DEFAULT_ENDPOINTS, OOKLA_SERVERS_URL

PROBE_SCHEMES = ("http", "https", "ws", "wss")

_EARTH_RADIUS_KM = 6371.0


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Endpoint:
    """A single candidate server."""

    name: str
    url: str
    location: str = ""
    country: str = ""
    region: str = ""
    sponsor: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> Endpoint:
        url = data.get("url", "")
        if not url and data.get("host"):
            port = int(data.get("port", 443))
            url = f"https://{data['host']}:{port}"
        lat = data.get("lat", data.get("latitude"))
        lon = data.get("lon", data.get("longitude"))
        return cls(
            name=data.get("name", "") or url,
            url=url,
            location=data.get("location", ""),
            country=data.get("country", ""),
            region=data.get("region", ""),
            sponsor=data.get("sponsor", ""),
            lat=float(lat) if lat is not None else None,
            lon=float(lon) if lon is not None else None,
        )

    @classmethod
    def from_url(cls, url: str) -> Endpoint:
        host = urlparse(url).hostname
        return cls(name=host or url, url=url)

    @classmethod
    def from_ookla(cls, data: dict) -> Endpoint:
        """Build a candidate from one entry of the speedtest.net server list."""
        host_raw = data.get("host", "")
        hostname, _, host_port = host_raw.partition(":")
        hostname = data.get("hostname", hostname)
        port = int(data.get("port") or host_port or 8080)
        return cls(
            name=data.get("name", "") or hostname,
            url=f"https://{hostname}:{port}",
            location=data.get("name", ""),
            country=data.get("country", ""),
            region=data.get("cc", ""),
            sponsor=data.get("sponsor", ""),
            lat=float(data.get("lat", 0)),
            lon=float(data.get("lon", 0)),
        )

    # -- Derived ------------------------------------------------------------

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def is_valid(self) -> bool:
        """True if the URL can be probed at all."""
        try:
            parsed = urlparse(self.url)
            port_ok = parsed.port is None or parsed.port > 0
        except ValueError:  # non-numeric or out-of-range port
            return False
        return parsed.scheme.lower() in PROBE_SCHEMES and bool(parsed.hostname) and port_ok

    def distance_km(self, lat: float, lon: float) -> Optional[float]:
        """Great-circle distance to (*lat*, *lon*), or None without coordinates."""
        if self.lat is None or self.lon is None:
            return None
        phi1, phi2 = math.radians(lat), math.radians(self.lat)
        dphi = phi2 - phi1
        dlmb = math.radians(self.lon - lon)
        a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        return 2 * _EARTH_RADIUS_KM * math.asin(math.sqrt(a))

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "location": self.location,
            "country": self.country,
            "region": self.region,
            "sponsor": self.sponsor,
            "lat": self.lat,
            "lon": self.lon,
        }


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def default_endpoints() -> List[Endpoint]:
    """The built-in candidate set, in preference order."""
    return [Endpoint.from_dict(d) for d in DEFAULT_ENDPOINTS]


def endpoints_from_urls(urls: List[str]) -> List[Endpoint]:
    return [Endpoint.from_url(u) for u in urls]


async def fetch_ookla_endpoints(
    session: aiohttp.ClientSession,
    limit: int = 10,
) -> List[Endpoint]:
    """Return up to *limit* nearby speedtest.net servers as candidates."""
    params = {
        "engine": "js",
        "https_functional": "true",
        "limit": str(limit),
    }

    async with session.get(OOKLA_SERVERS_URL, params=params) as resp:
        resp.raise_for_status()
        data = await resp.json()

    return [Endpoint.from_ookla(s) for s in data]
