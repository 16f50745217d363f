import httpx
import pytest
import pytest_asyncio
import respx

from waste_reports.geocoding import ADDRESS_LOOKUP_FAILED, ADDRESS_NOT_FOUND, ReverseGeocoder
from waste_reports.models import Role

from conftest import bearer

URL = "https://geo.example/v1/reverse"


@pytest_asyncio.fixture
async def reverse_geocoder():
    geo = ReverseGeocoder(URL, "test-key", timeout=1.0)
    yield geo
    await geo.aclose()


@pytest.fixture
def geocoder():
    """Real geocoder behind the API, pointed at an upstream that is down."""
    with respx.mock(assert_all_called=False) as mock:
        mock.get(URL).mock(return_value=httpx.Response(503))
        yield ReverseGeocoder(URL, None, timeout=1.0)


@pytest.mark.asyncio
@respx.mock
async def test_reverse_returns_display_name(reverse_geocoder):
    route = respx.get(URL).mock(
        return_value=httpx.Response(200, json={"display_name": "12 Marina Rd, Lagos Island, Lagos, Nigeria"})
    )
    address = await reverse_geocoder.reverse(6.45, 3.39)
    assert address == "12 Marina Rd, Lagos Island, Lagos, Nigeria"
    params = route.calls.last.request.url.params
    assert params["lat"] == "6.45"
    assert params["lon"] == "3.39"
    assert params["format"] == "json"
    assert params["key"] == "test-key"


@pytest.mark.asyncio
@respx.mock
async def test_reverse_without_display_name(reverse_geocoder):
    respx.get(URL).mock(return_value=httpx.Response(200, json={"error": "Unable to geocode"}))
    assert await reverse_geocoder.reverse(0.0, 0.0) == ADDRESS_NOT_FOUND


@pytest.mark.asyncio
@respx.mock
async def test_reverse_http_error_degrades(reverse_geocoder):
    respx.get(URL).mock(return_value=httpx.Response(500))
    assert await reverse_geocoder.reverse(1.0, 1.0) == ADDRESS_LOOKUP_FAILED


@pytest.mark.asyncio
@respx.mock
async def test_reverse_network_error_degrades(reverse_geocoder):
    respx.get(URL).mock(side_effect=httpx.ConnectTimeout("timed out"))
    assert await reverse_geocoder.reverse(1.0, 1.0) == ADDRESS_LOOKUP_FAILED


@pytest.mark.asyncio
@respx.mock
async def test_reverse_invalid_json_degrades(reverse_geocoder):
    respx.get(URL).mock(return_value=httpx.Response(200, content=b"<html>oops</html>"))
    assert await reverse_geocoder.reverse(1.0, 1.0) == ADDRESS_LOOKUP_FAILED


def test_geocoder_outage_does_not_block_submission(client, make_principal):
    _, citizen = make_principal(Role.user)
    resp = client.post(
        "/api/v1/reports",
        json={
            "title": "Rubble on the kerb",
            "waste_type": "construction",
            "image_url": "/storage/waste-reports/r.jpg",
            "latitude": 1.0,
            "longitude": 2.0,
        },
        headers=bearer(citizen),
    )
    assert resp.status_code == 201, f"Submit failed: {resp.status_code} {resp.text}"
    assert resp.json()["address"] == ADDRESS_LOOKUP_FAILED
