"""Redirects into the frontend app."""

from urllib.parse import urlencode

from fastapi import status
from fastapi.responses import RedirectResponse

from app.config import settings


def app_url(path: str, **params: str) -> str:
    """Absolute frontend URL for ``path`` with optional query parameters."""
    url = f"{settings.app_url.rstrip('/')}{path}"
    query = {key: value for key, value in params.items() if value is not None}
    if query:
        url = f"{url}?{urlencode(query)}"
    return url


def app_redirect(path: str, **params: str) -> RedirectResponse:
    """303 so the browser follows with GET regardless of the original method."""
    return RedirectResponse(app_url(path, **params), status_code=status.HTTP_303_SEE_OTHER)
