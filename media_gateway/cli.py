"""
Admin client for a deployed gateway.

    media-gateway-admin upload ./photo.jpg images/photo.jpg
    media-gateway-admin delete images/photo.jpg
    media-gateway-admin purge https://img.example.com/images/photo.jpg

Reads IMG_API_URL and IMG_API_TOKEN from the environment or a .env file.
"""
import argparse
import base64
import mimetypes
import os
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import find_dotenv, load_dotenv

DEFAULT_API_URL = "https://img.arroweffect.com"


def _post(client: httpx.Client, endpoint: str, payload: dict) -> httpx.Response:
    response = client.post(endpoint, json=payload)
    print(f"Status: {response.status_code}")
    print(f"Response: {response.text}")
    return response


def cmd_upload(client: httpx.Client, args: argparse.Namespace) -> httpx.Response:
    source = Path(args.file)
    content_type = args.content_type or mimetypes.guess_type(source.name)[0] or "application/octet-stream"
    return _post(client, "/upload", {
        "path": args.dest,
        "contentType": content_type,
        "fileBase64": base64.b64encode(source.read_bytes()).decode("ascii"),
    })


def cmd_delete(client: httpx.Client, args: argparse.Namespace) -> httpx.Response:
    return _post(client, "/delete", {"path": args.path})


def cmd_purge(client: httpx.Client, args: argparse.Namespace) -> httpx.Response:
    return _post(client, "/purge", {"url": args.url})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="media-gateway-admin", description="Media gateway admin client")
    parser.add_argument("--api-url", help="Gateway base URL (default: $IMG_API_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload a local file to the bucket")
    upload.add_argument("file", help="Local file to upload")
    upload.add_argument("dest", help="Destination key in the bucket")
    upload.add_argument("--content-type", help="MIME type (guessed from the file name by default)")
    upload.set_defaults(func=cmd_upload)

    delete = sub.add_parser("delete", help="Delete a key from the bucket")
    delete.add_argument("path", help="Key to delete")
    delete.set_defaults(func=cmd_delete)

    purge = sub.add_parser("purge", help="Purge a URL from the CDN cache")
    purge.add_argument("url", help="Absolute URL to purge")
    purge.set_defaults(func=cmd_purge)

    return parser


def main(argv: Optional[list] = None, transport: Optional[httpx.BaseTransport] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    args = build_parser().parse_args(argv)

    token = os.getenv("IMG_API_TOKEN")
    if not token:
        print("IMG_API_TOKEN is missing. Check your .env file.", file=sys.stderr)
        return 1

    base_url = args.api_url or os.getenv("IMG_API_URL", DEFAULT_API_URL)
    headers = {"Authorization": f"Bearer {token}"}

    try:
        with httpx.Client(base_url=base_url, headers=headers, timeout=60.0, transport=transport) as client:
            response = args.func(client, args)
    except (httpx.HTTPError, OSError) as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return 1

    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
