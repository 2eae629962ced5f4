"""
Artwork image model.

Generated artwork arrives as a base64 data URI. The fulfillment service
cannot accept inline data, so the first step that needs it hosts the image
and records the public URL here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class ImageAsset:
    """Artwork bytes plus the public URL once hosted."""

    source_data: Union[bytes, str]
    """Raw bytes, a data URI, or bare base64."""

    public_url: Optional[str] = None
    """Fetchable URL, populated lazily on first need."""

