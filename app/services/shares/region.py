import ipaddress
from typing import Optional

import httpx
from fastapi import Request
from loguru import logger

from app.core.enum import Region
from app.core.settings import settings


def _is_public(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.is_global


class RegionResolver:
    """Maps a client IP to a pricing region. Any lookup failure means INTL."""

    def __init__(self, http: Optional[httpx.AsyncClient], timeout: float = 5.0):
        self.http = http
        self.base_url = settings.GEO_API_URL.rstrip("/")
        self.timeout = timeout

    async def detect(self, ip: Optional[str]) -> Region:
        if not ip or not _is_public(ip) or self.http is None:
            return Region.INTL
        try:
            resp = await self.http.get(
                f"{self.base_url}/{ip}",
                params={"fields": "status,countryCode"},
                timeout=self.timeout,
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"⚠️ Geo lookup failed for {ip}: {e}")
            return Region.INTL

        if data.get("status") == "success" and data.get("countryCode") == "EG":
            return Region.EG
        return Region.INTL


def get_region_resolver(request: Request) -> RegionResolver:
    return RegionResolver(http=getattr(request.app.state, "http", None))
