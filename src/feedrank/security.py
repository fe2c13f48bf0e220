import os
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

SERVICE_KEY_HEADER_NAME = "X-Service-Key"

service_key_header = APIKeyHeader(name=SERVICE_KEY_HEADER_NAME, auto_error=False)


def get_service_key() -> str | None:
    """The shared key callers of the feed API must present."""
    return os.environ.get("FEED_SERVICE_KEY")


async def verify_service_key(
    service_key: Annotated[str | None, Depends(service_key_header)],
) -> str:
    expected_key = get_service_key()
    if not expected_key or not service_key or not secrets.compare_digest(
        service_key, expected_key
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing service key",
        )
    return service_key


RequireServiceKey = Annotated[str, Depends(verify_service_key)]
