"""Best-effort geolocation of the client address.

The remote address is always logged verbatim. City, country and time
zone are added only when a GeoIP database is configured and the first
address in the forwarded-for chain resolves. Headers are client
controlled and frequently malformed, so every failure here simply means
fewer fields on the log line.
"""

import ipaddress
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import geoip2.database
import geoip2.errors
import structlog
from starlette.requests import HTTPConnection

logger = structlog.get_logger(__name__)

FORWARDED_FOR_HEADER = "X-Forwarded-For"


@dataclass(frozen=True)
class GeoRecord:
    """Location data for one IP address."""

    city: str
    country: str
    timezone: str


class GeoDatabase(Protocol):
    """Read-only IP lookup. Implementations must tolerate concurrent reads."""

    def lookup(self, ip: str) -> Optional[GeoRecord]: ...


class MaxMindGeoDatabase:
    """``GeoDatabase`` backed by a MaxMind GeoIP2/GeoLite2 City database."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._reader = geoip2.database.Reader(path)

    def lookup(self, ip: str) -> Optional[GeoRecord]:
        try:
            response = self._reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            return None
        return GeoRecord(
            city=response.city.names.get("en", ""),
            country=response.country.iso_code or "",
            timezone=response.location.time_zone or "",
        )

    def close(self) -> None:
        self._reader.close()

    def __enter__(self) -> "MaxMindGeoDatabase":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_geo_database(path: Optional[str]) -> Optional[MaxMindGeoDatabase]:
    """Open the database at *path*, or return ``None`` when no path is set."""
    if not path:
        return None
    db = MaxMindGeoDatabase(path)
    logger.info("geoip_database_opened", path=path)
    return db


def get_remote_addr(
    conn: HTTPConnection, forwarded_for_header: str = FORWARDED_FOR_HEADER
) -> str:
    """Return the forwarded-for chain if present, else the peer ``host:port``."""
    forwarded = conn.headers.get(forwarded_for_header)
    if forwarded:
        return forwarded
    client = conn.client
    if client is None:
        return ""
    host, port = client.host, client.port
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _split_host_port(value: str) -> Optional[str]:
    """Return the host of a ``host:port`` / ``[v6]:port`` pair, else ``None``."""
    if value.startswith("["):
        end = value.find("]")
        if end < 0 or value[end + 1:end + 2] != ":":
            return None
        return value[1:end]
    if value.count(":") != 1:
        return None
    return value.split(":")[0]


def parse_client_ip(remote_addr: str) -> Optional[str]:
    """Extract the first IP of a forwarded-for chain.

    Returns the normalized address string, or ``None`` when nothing
    parseable is found.
    """
    first = remote_addr.split(",")[0].strip()
    if not first:
        return None
    host = _split_host_port(first)
    try:
        return str(ipaddress.ip_address(host if host is not None else first))
    except ValueError:
        return None


class GeoEnricher:
    """Turns a remote address into log fields."""

    def __init__(self, db: Optional[GeoDatabase] = None) -> None:
        self.db = db

    def enrich(self, remote_addr: str) -> tuple[dict[str, str], bool]:
        """Build the remote address fields for a request.

        Args:
            remote_addr: Forwarded-for header value or peer address.

        Returns:
            ``(fields, found)``. ``fields`` always holds ``remote_addr``;
            the geo fields are present only when ``found`` is ``True``.
        """
        fields = {"remote_addr": remote_addr}
        if self.db is None:
            return fields, False

        ip = parse_client_ip(remote_addr)
        if ip is None:
            logger.debug("geoip_unparseable_address", remote_addr=remote_addr)
            return fields, False

        try:
            record = self.db.lookup(ip)
        except Exception as exc:
            logger.debug("geoip_lookup_failed", ip=ip, error=str(exc))
            return fields, False
        if record is None:
            return fields, False

        fields["remote_city"] = record.city
        fields["remote_country"] = record.country
        fields["remote_tz"] = record.timezone
        return fields, True
