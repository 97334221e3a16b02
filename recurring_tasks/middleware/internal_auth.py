"""Shared-token guard for internal maintenance endpoints."""
import secrets

from fastapi import HTTPException, Request, status

from recurring_tasks import config

LOCAL_HOSTS = ("127.0.0.1", "::1", "localhost")


async def verify_internal_token(request: Request) -> None:
    """
    Allow a request to an internal endpoint.

    When INTERNAL_API_TOKEN is set, the X-Internal-Token header must match it.
    Without a configured token only local clients are accepted.

    Raises:
        HTTPException: 403 if the caller is not allowed
    """
    expected = config.INTERNAL_API_TOKEN
    provided = request.headers.get("x-internal-token")

    if expected:
        if not provided or not secrets.compare_digest(provided, expected):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid internal API token",
            )
        return

    client_host = request.client.host if request.client else None
    if client_host not in LOCAL_HOSTS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Internal API access restricted",
        )
