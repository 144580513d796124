"""
HTTP action transport: POST <base>/<action> with params as the JSON body.
"""

import logging
from typing import Any, Optional

import httpx

from napcat_channel.errors import ConfigurationError, DecodeError, HttpTransportError
from napcat_channel.models.action import ActionResponse
from napcat_channel.transport.frame import parse_response

logger = logging.getLogger(__name__)

USER_AGENT = "napcat-channel/0.1.0"


def _parse_url(url: str) -> Optional[httpx.URL]:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return None
    if not parsed.scheme or not parsed.host:
        return None
    return parsed


def _with_access_token(url: httpx.URL, access_token: Optional[str]) -> httpx.URL:
    if not access_token or "access_token" in url.params:
        return url
    return url.copy_add_param("access_token", access_token)


def append_access_token(url: str, access_token: Optional[str]) -> str:
    """Add `access_token` as a query parameter unless already present. Unparseable URLs pass through."""
    if not access_token:
        return url
    parsed = _parse_url(url)
    if parsed is None:
        return url
    return str(_with_access_token(parsed, access_token))


def build_http_url(base: str, action: str, access_token: Optional[str] = None) -> str:
    parsed = _parse_url(base)
    if parsed is None:
        raise ConfigurationError(f"Invalid Napcat httpUrl: {base}")
    base_path = parsed.path[:-1] if parsed.path.endswith("/") else parsed.path
    url = parsed.copy_with(path=f"{base_path}/{action}")
    return str(_with_access_token(url, access_token))


class HttpTransport:
    """Stateless request/response transport. No events, no correlation tokens.

    No request timeout is applied.
    """

    def __init__(
        self,
        base_url: Optional[str],
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url:
            raise ConfigurationError("HTTP fallback not configured")
        self._base_url = base_url
        self._access_token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=None,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def send_action(self, action: str, params: Optional[dict[str, Any]] = None) -> ActionResponse:
        url = build_http_url(self._base_url, action, self._access_token)
        try:
            resp = await self._client.post(url, json=params if params else {})
        except httpx.HTTPError as e:
            raise HttpTransportError(f"OneBot HTTP request failed ({action}): {e}") from e
        if not resp.is_success:
            raise HttpTransportError(
                f"OneBot HTTP error ({action}): {resp.status_code}", status_code=resp.status_code,
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise DecodeError(f"OneBot HTTP response is not JSON ({action})") from e
        logger.debug("napcat: http %s -> status=%s", action, body.get("status") if isinstance(body, dict) else None)
        return parse_response(body)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
