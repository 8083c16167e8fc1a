"""
API Dependencies (Authentication and injected services)
"""
import logging
from typing import Any, Dict

from fastapi import Request

from media_gateway.config import Settings
from media_gateway.exceptions import AuthError, InvalidJSONError
from media_gateway.services.image_service import ImageTransformer
from media_gateway.services.purge_service import CachePurger
from media_gateway.services.storage_service import ObjectStore
from media_gateway.utils.security import is_authorized

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> ObjectStore:
    return request.app.state.storage


def get_purger(request: Request) -> CachePurger:
    return request.app.state.purger


def get_transformer(request: Request) -> ImageTransformer:
    return request.app.state.transformer


def verify_bearer(request: Request, settings: Settings) -> None:
    """Raise ``AuthError`` unless the request carries the configured bearer secret"""
    if not is_authorized(request.headers.get("Authorization"), settings.IMAGE_API_SECRET):
        logger.warning(
            f"Unauthorized {request.method} {request.url.path}",
            extra={"client_ip": request.client.host if request.client else "unknown"},
        )
        raise AuthError("Unauthorized")


async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    Parse the request body as JSON.
    Non-object documents parse fine but carry no fields, so they yield an empty dict.
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidJSONError("Invalid JSON body") from e
    return body if isinstance(body, dict) else {}
