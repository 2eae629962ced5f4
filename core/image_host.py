"""
Public image hosting bridge.

The fulfillment service fetches artwork by URL and cannot accept inline
data, so generated artwork (a base64 data URI held by the browser) has to be
uploaded somewhere public first. This module does that upload.

The default backend is tmpfiles.org: anonymous, no key, files expire after
about an hour - long enough for one wizard session, which is all we need.

Usage:
    async with ImageHostClient(upload_url) as host:
        url = await host.host_image("data:image/png;base64,iVBORw0...")
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from typing import Optional, Union

import httpx

from .exceptions import HostingError


DEFAULT_UPLOAD_URL = "https://tmpfiles.org/api/v1/upload"

# data:image/png;base64,  data:image/svg+xml;base64,  data:;base64,
_DATA_URI_PREFIX = re.compile(r"^data:[\w.+/-]*;base64,", re.IGNORECASE)


def decode_image_data(image_data: Union[bytes, str]) -> bytes:
    """
    Turn artwork input into raw image bytes.

    Args:
        image_data: Raw bytes, a data URI, or bare base64 text

    Returns:
        Decoded image bytes

    Raises:
        HostingError: If the input is empty or not valid base64
    """
    if isinstance(image_data, (bytes, bytearray)):
        if not image_data:
            raise HostingError("Image data is empty")
        return bytes(image_data)

    raw = _DATA_URI_PREFIX.sub("", (image_data or "").strip())
    if not raw:
        raise HostingError("Image data is empty")

    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HostingError(f"Image data is not valid base64: {e}")


def to_direct_download_url(url: str) -> str:
    """
    Rewrite a tmpfiles.org page URL to its direct download form.

    tmpfiles.org answers with "https://tmpfiles.org/12345/file.png", which
    is an HTML page; the file itself lives at "/dl/12345/file.png".
    Other hosts are returned unchanged apart from the https upgrade.
    """
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    if "tmpfiles.org/" in url and "tmpfiles.org/dl/" not in url:
        url = url.replace("tmpfiles.org/", "tmpfiles.org/dl/", 1)
    return url


class ImageHostClient:
    """
    Uploads artwork to an anonymous public image host.

    Stateless apart from the underlying HTTP connection pool; nothing about
    uploaded images is remembered. Hosting the same bytes twice simply
    uploads twice.
    """

    def __init__(
        self,
        upload_url: str = DEFAULT_UPLOAD_URL,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the hosting client.

        Args:
            upload_url: Multipart upload endpoint of the host
            timeout_seconds: Per-request timeout
            transport: Optional custom transport (tests use httpx.MockTransport)
            logger: Logger instance (creates default if not provided)
        """
        self.upload_url = upload_url
        self._logger = logger or logging.getLogger("art_print_web.core.image_host")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ImageHostClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def host_image(self, image_data: Union[bytes, str]) -> str:
        """
        Upload artwork and return a URL a third party can fetch.

        Any data URI envelope is stripped; only the decoded image bytes are
        sent, as a multipart "file" field.

        Args:
            image_data: Raw bytes, a data URI, or bare base64 text

        Returns:
            HTTPS URL of the hosted image

        Raises:
            HostingError: On bad input, transport failure, non-success
                status, or a response without a usable URL
        """
        image_bytes = decode_image_data(image_data)
        filename = f"art_{int(time.time() * 1000)}.png"

        self._logger.info(f"Uploading artwork to public host ({len(image_bytes)} bytes)")

        try:
            response = await self._client.post(
                self.upload_url,
                files={"file": (filename, image_bytes, "image/png")},
            )
        except httpx.HTTPError as e:
            self._logger.error(f"Image upload failed: {e}")
            raise HostingError(f"Failed to host image: {e}")

        if not response.is_success:
            self._logger.error(f"Image host returned HTTP {response.status_code}")
            raise HostingError(
                f"Failed to host image (HTTP {response.status_code})",
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise HostingError("Image host returned a malformed response", response.status_code)

        if not isinstance(body, dict) or body.get("status") != "success":
            raise HostingError("Upload failed", response.status_code)

        data = body.get("data")
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise HostingError("Image host response did not include a URL", response.status_code)

        public_url = to_direct_download_url(url)
        self._logger.info(f"Artwork hosted at {public_url}")
        return public_url
