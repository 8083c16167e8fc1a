import hmac
from typing import Optional

BEARER_PREFIX = "Bearer "


def is_authorized(header_value: Optional[str], expected_secret: str) -> bool:
    """Check an ``Authorization`` header against the configured shared secret."""
    if not header_value or not expected_secret:
        return False
    if not header_value.startswith(BEARER_PREFIX):
        return False
    token = header_value[len(BEARER_PREFIX):]
    return hmac.compare_digest(token.encode("utf-8"), expected_secret.encode("utf-8"))
