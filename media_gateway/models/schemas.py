"""
Pydantic Data Models
"""
from typing import Any, Dict

from pydantic import BaseModel


class ErrorResult(BaseModel):
    """JSON error body returned by the delete endpoint"""
    success: bool = False
    error: str


class DeleteResult(BaseModel):
    success: bool = True
    deleted: str


class PurgeResult(BaseModel):
    """Purge confirmation, echoing the Cloudflare API response"""
    success: bool = True
    purged: str
    cloudflare: Dict[str, Any]
