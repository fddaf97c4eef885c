"""Unit tests for routing providers and image loading."""

import io

import pytest
import requests
from PIL import Image

from conftest import FakeHTTP
from routista.imaging import load_image, to_raster
from routista.errors import ServiceError
from routista.providers.mock import StraightLineProvider
from routista.providers.radar import RadarProvider, build_provider


def _http_error(status, body):
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode()
    return requests.HTTPError(f"{status}", response=resp)


ROUTE_PAYLOAD = {
    "routes": [
        {
            "distance": {"value": 1520.5, "text": "1.5 km"},
            "duration": {"value": 1100, "text": "18 mins"},
            "geometry": {"type": "LineString", "coordinates": [[-0.12, 51.5], [-0.11, 51.51]]},
        }
    ]
}


class TestRadarProvider:
    def test_request_format(self, settings) -> None:
        http = FakeHTTP(ROUTE_PAYLOAD)
        provider = RadarProvider("prj_test_pk", settings, http=http)
        provider.route([(51.5, -0.12), (51.51, -0.11)], "cycling-regular")

        url, params, headers = http.requests[0]
        assert url == "https://api.radar.io/v1/route/directions"
        assert params["locations"] == "51.5,-0.12|51.51,-0.11"
        assert params["mode"] == "bike"
        assert params["geometry"] == "linestring"
        assert params["units"] == "metric"
        assert headers == {"Authorization": "prj_test_pk"}

    def test_coordinates_converted_to_lat_lng(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP(ROUTE_PAYLOAD))
        (seg,) = provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking")
        assert seg.coordinates == [(51.5, -0.12), (51.51, -0.11)]
        assert seg.distance_m == 1520.5
        assert seg.duration_s == 1100

    def test_no_routes_is_empty(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP({"routes": []}))
        assert provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking") == []

    def test_route_without_geometry_skipped(self, settings) -> None:
        payload = {"routes": [{"distance": {"value": 10}}]}
        provider = RadarProvider("key", settings, http=FakeHTTP(payload))
        assert provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking") == []

    def test_http_error_raises_service_error(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP(exc=_http_error(429, "slow down")))
        with pytest.raises(ServiceError, match="429"):
            provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking")

    def test_network_error_raises_service_error(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP(exc=requests.ConnectionError("refused")))
        with pytest.raises(ServiceError):
            provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking")

    def test_malformed_response(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP({"routes": "nope"}))
        with pytest.raises(ServiceError):
            provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking")

    def test_null_routes_is_empty(self, settings) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP({"routes": None}))
        assert provider.route([(51.5, -0.12), (51.51, -0.11)], "foot-walking") == []

    @pytest.mark.parametrize(
        "route",
        [
            {"distance": 1000, "geometry": {"coordinates": [[-0.1, 51.5], [-0.1, 51.51]]}},
            {"duration": "slow", "geometry": {"coordinates": [[-0.1, 51.5], [-0.1, 51.51]]}},
            {"distance": {"value": "far"}, "geometry": {"coordinates": [[-0.1, 51.5], [-0.1, 51.51]]}},
            {"geometry": [[-0.1, 51.5], [-0.1, 51.51]]},
            {"geometry": {"coordinates": "-0.1,51.5"}},
        ],
    )
    def test_malformed_route_fields_raise_service_error(self, settings, route) -> None:
        provider = RadarProvider("key", settings, http=FakeHTTP({"routes": [route]}))
        with pytest.raises(ServiceError):
            provider.route([(51.5, -0.1), (51.51, -0.1)], "foot-walking")

    def test_build_provider_requires_key(self, settings) -> None:
        assert build_provider(settings) is None
        keyed = settings.model_copy(update={"radar_api_key": "key"})
        assert isinstance(build_provider(keyed), RadarProvider)


class TestRadarAutocomplete:
    def test_request_format(self, settings) -> None:
        addresses = [{"latitude": 51.5, "longitude": -0.1, "formattedAddress": "London, UK"}]
        http = FakeHTTP({"addresses": addresses})
        result = RadarProvider("prj_test_pk", settings, http=http).autocomplete("London")

        assert result == {"addresses": addresses}
        url, params, headers = http.requests[0]
        assert url == "https://api.radar.io/v1/search/autocomplete"
        assert params == {"query": "London", "limit": "5"}
        assert headers == {"Authorization": "prj_test_pk"}

    def test_blank_query_skips_request(self, settings) -> None:
        http = FakeHTTP({"addresses": [{"formattedAddress": "x"}]})
        assert RadarProvider("key", settings, http=http).autocomplete("   ") == {"addresses": []}
        assert http.requests == []

    @pytest.mark.parametrize(
        "http",
        [
            FakeHTTP(exc=_http_error(401, "unauthorized")),
            FakeHTTP(exc=requests.ConnectionError("refused")),
            FakeHTTP({"meta": {"code": 200}}),
            FakeHTTP({"addresses": None}),
        ],
    )
    def test_failures_degrade_to_no_addresses(self, settings, http) -> None:
        assert RadarProvider("key", settings, http=http).autocomplete("London") == {"addresses": []}


class TestStraightLineProvider:
    def test_returns_waypoints_as_route(self) -> None:
        pts = [(51.5, -0.12), (51.51, -0.12)]
        (seg,) = StraightLineProvider().route(pts, "foot-walking")
        assert seg.coordinates == pts
        assert 1100 < seg.distance_m < 1120
        assert seg.duration_s == pytest.approx(seg.distance_m / 1.4, abs=0.1)


class TestImaging:
    def test_large_image_is_downscaled(self) -> None:
        img = Image.new("RGB", (1600, 400), (255, 255, 255))
        raster = to_raster(img, max_dimension=800)
        assert (raster.width, raster.height) == (800, 200)
        assert raster.pixels()[0, 0].tolist() == [255, 255, 255, 255]

    def test_load_from_file_object(self) -> None:
        buf = io.BytesIO()
        Image.new("L", (30, 20), 0).save(buf, format="PNG")
        buf.seek(0)
        raster = load_image(buf)
        assert (raster.width, raster.height) == (30, 20)
        assert raster.pixels()[5, 5].tolist() == [0, 0, 0, 255]
