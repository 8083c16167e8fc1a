"""
API Routes

Admin endpoints (bearer-authenticated):
- POST /upload  store a base64-encoded file in the bucket
- POST /delete  remove a file from the bucket
- POST /purge   evict a URL from the CDN cache

Every other method/path serves images through the transformation backend.
"""
import base64
import binascii
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from media_gateway.api.dependencies import (
    get_app_settings,
    get_purger,
    get_storage,
    get_transformer,
    read_json_body,
    verify_bearer,
)
from media_gateway.config import Settings
from media_gateway.exceptions import (
    GatewayError,
    InvalidPathError,
    InvalidPayloadError,
    MissingFieldError,
    NotFoundError,
    PurgeError,
    TransformError,
    UnsupportedMediaTypeError,
)
from media_gateway.models.schemas import DeleteResult, ErrorResult, PurgeResult
from media_gateway.services.image_service import (
    ERROR_CACHE_CONTROL,
    NOT_FOUND_CACHE_CONTROL,
    SUCCESS_CACHE_CONTROL,
    ImageTransformer,
    build_transform_options,
    fetch_image,
    is_svg,
)
from media_gateway.services.purge_service import CachePurger
from media_gateway.services.storage_service import ObjectStore
from media_gateway.utils.validation import is_valid_path, normalize_absolute_url

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_FIELDS = ("path", "contentType", "fileBase64")
STORED_CACHE_CONTROL = "public, max-age=31536000"

IMAGE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _decode_base64(value) -> bytes:
    if not isinstance(value, str):
        raise InvalidPayloadError("Invalid `fileBase64` value")
    compact = "".join(value.split())
    compact += "=" * (-len(compact) % 4)
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidPayloadError("Invalid `fileBase64` value") from e


def _require_valid_path(path) -> str:
    if not is_valid_path(path):
        raise InvalidPathError("Invalid `path` value", {"path": repr(path)})
    return path


@router.post("/upload")
async def upload_file(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    storage: ObjectStore = Depends(get_storage),
):
    """Upload a file to the bucket, overwriting any object at the same key"""
    try:
        verify_bearer(request, settings)

        if request.headers.get("Content-Type") != "application/json":
            raise UnsupportedMediaTypeError("Content-Type must be application/json")

        body = await read_json_body(request)

        missing = [name for name in UPLOAD_FIELDS if not body.get(name)]
        if missing:
            fields = ", ".join(f"`{name}`" for name in missing)
            raise MissingFieldError(f"Missing {fields} in body", {"missing": missing})

        path = _require_valid_path(body["path"])
        content_type = body["contentType"]
        if not isinstance(content_type, str):
            raise InvalidPayloadError("Invalid `contentType` value")
        data = _decode_base64(body["fileBase64"])

        await storage.put(path, data, content_type, STORED_CACHE_CONTROL)
    except GatewayError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    logger.info(f"Uploaded {path}", extra={"key": path, "size_bytes": len(data), "content_type": content_type})

    return PlainTextResponse(f"Uploaded {path} successfully", status_code=201)


@router.post("/delete")
async def delete_file(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    storage: ObjectStore = Depends(get_storage),
):
    """Delete a file from the bucket"""
    try:
        verify_bearer(request, settings)

        body = await read_json_body(request)

        path = body.get("path")
        if not path:
            raise MissingFieldError("Missing `path` field in body")
        _require_valid_path(path)

        if not await storage.exists(path):
            raise NotFoundError(f'File "{path}" not found in bucket', {"path": path})
    except GatewayError as e:
        return JSONResponse(
            status_code=e.status_code,
            content=ErrorResult(error=e.message).model_dump(),
        )

    await storage.delete(path)
    logger.info(f"Deleted {path}", extra={"key": path})

    return JSONResponse(status_code=200, content=DeleteResult(deleted=path).model_dump())


@router.post("/purge")
async def purge_url(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    purger: CachePurger = Depends(get_purger),
):
    """Purge a single URL from the CDN cache"""
    try:
        verify_bearer(request, settings)

        body = await read_json_body(request)

        target = body.get("url")
        if not target:
            raise MissingFieldError("Missing `url` field in body")
        purge_target = normalize_absolute_url(target)

        data = await purger.purge(purge_target)
    except PurgeError as e:
        errors = e.details.get("errors")
        return PlainTextResponse(f"Failed to purge: {json.dumps(errors, default=str)}", status_code=e.status_code)
    except GatewayError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    return JSONResponse(
        status_code=200,
        content=PurgeResult(purged=purge_target, cloudflare=data).model_dump(),
    )


@router.api_route("/{image_path:path}", methods=IMAGE_METHODS, include_in_schema=False)
async def serve_image(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    transformer: ImageTransformer = Depends(get_transformer),
):
    """Serve an origin image, transformed per query string and Accept header"""
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    image_url = f"{settings.ORIGIN_BASE_URL.rstrip('/')}{path}"
    accept = request.headers.get("Accept")

    options = None
    if not is_svg(request.url.path):
        options = build_transform_options(request.query_params.multi_items(), accept)

    try:
        upstream = await fetch_image(transformer, image_url, options, accept)
    except TransformError as e:
        logger.error(f"Image upstream unavailable: {e}", extra={"url": image_url})
        return PlainTextResponse(
            "Image unavailable",
            status_code=e.status_code,
            headers={"Cache-Control": ERROR_CACHE_CONTROL},
        )

    if upstream.status_code == 404:
        return PlainTextResponse(
            "Image not found",
            status_code=404,
            headers={"Cache-Control": NOT_FOUND_CACHE_CONTROL},
        )

    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in upstream.headers:
        if name.lower() != "cache-control":
            response.headers.append(name, value)
    response.headers["Cache-Control"] = SUCCESS_CACHE_CONTROL if upstream.is_success else ERROR_CACHE_CONTROL

    return response
