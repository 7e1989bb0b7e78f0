import httpx

from app.core.enum import Region
from app.services.shares.paymob_provider import extract_order_id
from app.services.shares.region import RegionResolver


def resolver(handler) -> RegionResolver:
    return RegionResolver(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_egyptian_ip_maps_to_eg():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/41.33.0.1")
        return httpx.Response(200, json={"status": "success", "countryCode": "EG"})

    assert await resolver(handler).detect("41.33.0.1") == Region.EG


async def test_other_country_and_failures_map_to_intl():
    def other(request):
        return httpx.Response(200, json={"status": "success", "countryCode": "DE"})

    def broken(request):
        raise httpx.ConnectError("down")

    def not_json(request):
        return httpx.Response(200, content=b"<html>")

    assert await resolver(other).detect("8.8.8.8") == Region.INTL
    assert await resolver(broken).detect("8.8.8.8") == Region.INTL
    assert await resolver(not_json).detect("8.8.8.8") == Region.INTL


async def test_private_or_missing_ip_skips_lookup():
    def handler(request):
        raise AssertionError("lookup should not happen")

    assert await resolver(handler).detect(None) == Region.INTL
    assert await resolver(handler).detect("127.0.0.1") == Region.INTL
    assert await resolver(handler).detect("10.0.0.5") == Region.INTL
    assert await RegionResolver(http=None).detect("8.8.8.8") == Region.INTL


def test_paymob_order_id_locations():
    assert extract_order_id({"obj": {"order": {"id": 12}}}) == "12"
    assert extract_order_id({"order": {"id": "34"}}) == "34"
    assert extract_order_id({"id": 56}) == "56"
    assert extract_order_id({}) is None
