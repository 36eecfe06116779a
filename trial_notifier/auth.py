# trial_notifier/auth.py
import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

# auto_error off: an unset API_KEY leaves the job routes open
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(x_api_key: Optional[str] = Security(api_key_header)) -> None:
    """Guard the job routes with X-API-Key once API_KEY is set in env."""
    expected = os.getenv("API_KEY")
    if not expected:
        return
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if not secrets.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid API key")
