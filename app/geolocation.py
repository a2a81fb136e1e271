"""
Client IP → country resolution.

Advisory only: any lookup failure leaves the country unknown and the request
continues. Loopback callers resolve to the configured development country.
"""
import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

import geoip2.database
import geoip2.errors
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

logger = logging.getLogger(__name__)

IPV4_MAPPED_PREFIX = "::ffff:"

_reader: Optional[geoip2.database.Reader] = None
_reader_failed = False


@dataclass
class GeoLocation:
    country_code: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "countryCode": self.country_code,
            "country": self.country,
            "region": self.region,
            "city": self.city,
        }


UNKNOWN = GeoLocation()


def client_ip(headers, peer_host: Optional[str]) -> Optional[str]:
    """
    Pick the caller's IP: first X-Forwarded-For entry, then X-Real-IP, then the
    socket peer. IPv4-mapped IPv6 addresses are unwrapped.
    """
    forwarded_for = headers.get("x-forwarded-for")
    real_ip = headers.get("x-real-ip")

    ip = None
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
    if not ip and real_ip:
        ip = real_ip.strip()
    if not ip:
        ip = peer_host

    if ip and ip.startswith(IPV4_MAPPED_PREFIX):
        ip = ip[len(IPV4_MAPPED_PREFIX):]
    return ip or None


def _is_loopback(ip: Optional[str]) -> bool:
    if not ip:
        return True
    try:
        return ipaddress.ip_address(ip).is_loopback
    except ValueError:
        return False


def _get_reader() -> Optional[geoip2.database.Reader]:
    """Open the GeoLite2 database once per process; None if it cannot be opened."""
    global _reader, _reader_failed
    if _reader is None and not _reader_failed:
        try:
            _reader = geoip2.database.Reader(settings.geoip_database_path)
        except (OSError, ValueError) as e:
            _reader_failed = True
            logger.warning("GeoIP database unavailable at %s: %s", settings.geoip_database_path, e)
    return _reader


def lookup(ip: Optional[str]) -> GeoLocation:
    if _is_loopback(ip):
        return GeoLocation(
            country_code=settings.geo_default_country_code,
            country=settings.geo_default_country_name,
        )

    reader = _get_reader()
    if reader is None:
        return UNKNOWN

    try:
        result = reader.city(ip)
    except geoip2.errors.AddressNotFoundError:
        return UNKNOWN
    except Exception as e:
        logger.debug("GeoIP lookup failed for %s: %s", ip, e)
        return UNKNOWN

    return GeoLocation(
        country_code=result.country.iso_code,
        country=result.country.name,
        region=result.subdivisions.most_specific.iso_code,
        city=result.city.name,
    )


class GeolocationMiddleware(BaseHTTPMiddleware):
    """Attach a GeoLocation to request.state.geo for every request."""

    async def dispatch(self, request: Request, call_next):
        try:
            peer = request.client.host if request.client else None
            request.state.geo = lookup(client_ip(request.headers, peer))
        except Exception as e:
            logger.warning("Geolocation failed: %s", e)
            request.state.geo = UNKNOWN
        return await call_next(request)


def get_geo(request: Request) -> GeoLocation:
    """Dependency returning the caller's resolved location"""
    return getattr(request.state, "geo", UNKNOWN)
