"""
Image Service

Maps query parameters and the ``Accept`` header to Cloudflare image
transformation options and fetches the transformed image, with:
- SVG passthrough (vector images are never transformed)
- A single retry against the untransformed origin when transformation fails
"""
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import quote

import httpx

from media_gateway.config import Settings
from media_gateway.exceptions import TransformError

logger = logging.getLogger(__name__)

ALLOWED_PARAMS = (
    "width", "height", "quality", "fit", "dpr", "gravity",
    "crop", "pad", "background", "draw", "rotate", "trim",
)

SUCCESS_CACHE_CONTROL = "public, max-age=31536000, stale-while-revalidate=86400"
NOT_FOUND_CACHE_CONTROL = "public, max-age=60"
ERROR_CACHE_CONTROL = "no-store"

# Not forwarded from upstream: connection-level, or invalidated by httpx decoding the body.
_DROPPED_HEADERS = {
    "connection", "keep-alive", "transfer-encoding", "te", "trailer", "upgrade",
    "proxy-authenticate", "proxy-authorization", "content-length", "content-encoding",
}

OptionValue = Union[int, float, str]
QueryParams = Union[Mapping, Iterable[Tuple[str, str]]]


@dataclass
class UpstreamImage:
    status_code: int
    # Ordered pairs; a repeated header such as Set-Cookie appears once per value.
    headers: List[Tuple[str, str]] = field(default_factory=list)
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


def _coerce_number(value: str) -> OptionValue:
    """Return ``value`` as a number when it is a finite numeric literal."""
    if "_" in value:
        return value
    try:
        number = float(value)
    except ValueError:
        return value
    if not math.isfinite(number):
        return value
    return int(number) if number.is_integer() else number


def negotiate_format(accept: Optional[str]) -> str:
    accept = accept or ""
    if "image/avif" in accept:
        return "avif"
    if "image/webp" in accept:
        return "webp"
    return "jpeg"


def build_transform_options(query_params: QueryParams, accept: Optional[str]) -> Dict[str, OptionValue]:
    """
    Build transformation options from an inbound request.

    Args:
        query_params: Mapping or sequence of ``(key, value)`` pairs; later pairs win.
        accept: The inbound ``Accept`` header, if any.

    Returns:
        Allow-listed options plus the negotiated ``format``.
    """
    items = query_params.items() if isinstance(query_params, Mapping) else query_params

    options: Dict[str, OptionValue] = {}
    for key, value in items:
        if key in ALLOWED_PARAMS:
            options[key] = _coerce_number(value)

    options["format"] = negotiate_format(accept)
    return options


def is_svg(path: str) -> bool:
    return path.lower().endswith(".svg")


class ImageTransformer(ABC):

    @abstractmethod
    async def fetch(
        self,
        image_url: str,
        options: Optional[Dict[str, OptionValue]],
        accept: Optional[str],
    ) -> UpstreamImage:
        """
        Fetch ``image_url``, transformed with ``options`` or untouched when ``options`` is None.
        Raises ``TransformError`` when the upstream cannot be reached.
        """
        ...


class CloudflareImageTransformer(ImageTransformer):
    """Uses the ``/cdn-cgi/image/<options>/<source>`` URL form of Cloudflare Images."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.transform_base_url = settings.TRANSFORM_BASE_URL.rstrip("/")
        self.user_agent = settings.TRANSFORM_USER_AGENT

    def build_url(self, image_url: str, options: Optional[Dict[str, OptionValue]]) -> str:
        if options is None:
            return image_url
        encoded = ",".join(f"{key}={quote(str(value), safe='')}" for key, value in options.items())
        return f"{self.transform_base_url}/cdn-cgi/image/{encoded}/{image_url}"

    async def fetch(
        self,
        image_url: str,
        options: Optional[Dict[str, OptionValue]],
        accept: Optional[str],
    ) -> UpstreamImage:
        url = self.build_url(image_url, options)
        headers = {
            "User-Agent": self.user_agent,
            "Accept": accept or "image/*",
        }

        try:
            response = await self.client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise TransformError("Image upstream unreachable", {"url": url, "reason": str(e)}) from e

        return UpstreamImage(
            status_code=response.status_code,
            headers=[(k, v) for k, v in response.headers.multi_items() if k.lower() not in _DROPPED_HEADERS],
            content=response.content,
        )


async def fetch_image(
    transformer: ImageTransformer,
    image_url: str,
    options: Optional[Dict[str, OptionValue]],
    accept: Optional[str],
) -> UpstreamImage:
    """
    Fetch an image through the transformer, retrying once against the
    untransformed origin if the transformation fails. A 404 is final.
    """
    if options is None:
        return await transformer.fetch(image_url, None, accept)

    try:
        upstream = await transformer.fetch(image_url, options, accept)
    except TransformError as e:
        logger.warning(f"Transformation failed, falling back to origin: {e}", extra=e.details)
    else:
        if upstream.is_success or upstream.status_code == 404:
            return upstream
        logger.warning(
            f"Transformation returned {upstream.status_code}, falling back to origin",
            extra={"url": image_url},
        )

    return await transformer.fetch(image_url, None, accept)
