"""
Unit tests for the public image hosting bridge.
"""

import httpx
import pytest

from core.exceptions import HostingError
from core.image_host import ImageHostClient, decode_image_data, to_direct_download_url

from conftest import DATA_URI, UPLOAD_URL


def _success(url="https://tmpfiles.org/123/art.png"):
    return (200, {"status": "success", "data": {"url": url}})


class TestDecodeImageData:
    """Tests for turning artwork input into bytes."""

    def test_data_uri_is_stripped_and_decoded(self):
        assert decode_image_data(DATA_URI) == b"\x00\x00\x00"

    def test_bare_base64(self):
        assert decode_image_data("aGVsbG8=") == b"hello"

    def test_other_image_types(self):
        assert decode_image_data("data:image/svg+xml;base64,aGVsbG8=") == b"hello"

    def test_bytes_pass_through(self):
        assert decode_image_data(b"\x89PNG") == b"\x89PNG"

    @pytest.mark.parametrize("value", ["", "data:image/png;base64,", b""])
    def test_empty_input_rejected(self, value):
        with pytest.raises(HostingError):
            decode_image_data(value)

    def test_invalid_base64_rejected(self):
        with pytest.raises(HostingError):
            decode_image_data("data:image/png;base64,not base64!")


class TestDirectDownloadUrl:
    """Tests for the tmpfiles.org URL rewrite."""

    def test_tmpfiles_page_url_becomes_download_url(self):
        assert (
            to_direct_download_url("https://tmpfiles.org/123/art.png")
            == "https://tmpfiles.org/dl/123/art.png"
        )

    def test_http_is_upgraded(self):
        assert (
            to_direct_download_url("http://tmpfiles.org/123/art.png")
            == "https://tmpfiles.org/dl/123/art.png"
        )

    def test_already_direct_url_unchanged(self):
        url = "https://tmpfiles.org/dl/123/art.png"
        assert to_direct_download_url(url) == url

    def test_other_hosts_unchanged(self):
        assert to_direct_download_url("https://h/x.png") == "https://h/x.png"


class TestImageHostClient:
    """Tests for the multipart upload."""

    @pytest.mark.anyio
    async def test_uploads_exactly_the_decoded_bytes(self, api):
        api.add("POST", "/api/v1/upload", _success())

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            url = await host.host_image(DATA_URI)

        assert url == "https://tmpfiles.org/dl/123/art.png"
        assert len(api.requests) == 1

        request = api.requests[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="file"' in body
        assert b'filename="art_' in body
        assert b"Content-Type: image/png" in body
        # Part headers, then the three decoded bytes, then the boundary
        assert b"\r\n\r\n\x00\x00\x00\r\n--" in body
        assert b"AAAA" not in body

    @pytest.mark.anyio
    async def test_non_success_status_raises(self, api):
        api.add("POST", "/api/v1/upload", (500, "Internal Server Error"))

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError) as exc_info:
                await host.host_image(DATA_URI)

        assert exc_info.value.http_status == 500

    @pytest.mark.anyio
    async def test_body_status_not_success_raises(self, api):
        api.add("POST", "/api/v1/upload", (200, {"status": "error", "message": "quota"}))

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError, match="Upload failed"):
                await host.host_image(DATA_URI)

    @pytest.mark.anyio
    async def test_malformed_body_raises(self, api):
        api.add("POST", "/api/v1/upload", (200, "<html>oops</html>"))

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError, match="malformed"):
                await host.host_image(DATA_URI)

    @pytest.mark.anyio
    async def test_missing_url_raises(self, api):
        api.add("POST", "/api/v1/upload", (200, {"status": "success", "data": {}}))

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError, match="did not include a URL"):
                await host.host_image(DATA_URI)

    @pytest.mark.anyio
    async def test_transport_failure_raises(self, api):
        api.add("POST", "/api/v1/upload", httpx.ConnectError("connection refused"))

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError) as exc_info:
                await host.host_image(DATA_URI)

        assert exc_info.value.http_status is None

    @pytest.mark.anyio
    async def test_bad_input_never_reaches_the_host(self, api):
        api.add("POST", "/api/v1/upload", _success())

        async with ImageHostClient(UPLOAD_URL, transport=api.transport) as host:
            with pytest.raises(HostingError):
                await host.host_image("")

        assert api.requests == []
