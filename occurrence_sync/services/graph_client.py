# occurrence_sync/services/graph_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from occurrence_sync.core.config import get_settings

logger = logging.getLogger(__name__)


class GraphClientError(RuntimeError):
    """
    Raised when the GraphClient cannot obtain an access token or when a
    Graph API call fails.

    `status_code` carries the HTTP status of the failing response, or None
    when the request never produced one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class _TokenState:
    access_token: str
    expires_at: datetime


class GraphClient:
    """
    Minimal Microsoft Graph API client using client-credentials flow.

    Responsibilities
    ----------------
    - Fetch and cache an access token using the OAuth2 client-credentials flow.
    - Issue authenticated GET requests and surface failures as GraphClientError.

    Notes
    -----
    - Token caching is in-memory for this process only.
    - Tokens are refreshed 60 seconds before their reported expiry.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://graph.microsoft.com",
        scope: str = "https://graph.microsoft.com/.default",
        timeout_seconds: float = 10.0,
    ) -> None:
        if not tenant_id or not client_id or not client_secret:
            raise ValueError("tenant_id, client_id and client_secret are required")

        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._scope = scope
        self._timeout_seconds = timeout_seconds

        self._token_state: Optional[_TokenState] = None

    @property
    def token_url(self) -> str:
        """
        Returns the OAuth2 token endpoint for the configured tenant.
        """
        return f"https://login.microsoftonline.com/{self._tenant_id}/oauth2/v2.0/token"

    async def _fetch_token(self) -> _TokenState:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": "client_credentials",
            "scope": self._scope,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(self.token_url, data=data)
        except httpx.HTTPError as exc:
            raise GraphClientError(f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise GraphClientError(
                f"Failed to obtain Graph token (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        payload = resp.json()
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")

        if not access_token or not isinstance(expires_in, (int, float)):
            raise GraphClientError(
                "Invalid token response from Azure AD (missing access_token/expires_in)"
            )

        now = datetime.now(tz=timezone.utc)
        safety_margin = 60  # seconds
        expires_at = now + timedelta(seconds=float(expires_in) - safety_margin)

        logger.debug("Obtained Graph token valid until %s", expires_at.isoformat())
        return _TokenState(access_token=access_token, expires_at=expires_at)

    async def get_access_token(self) -> str:
        """
        Return a valid access token, using a cached value if still valid.
        """
        now = datetime.now(tz=timezone.utc)
        if self._token_state and self._token_state.expires_at > now:
            return self._token_state.access_token

        self._token_state = await self._fetch_token()
        return self._token_state.access_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Issue an authenticated request to Graph.

        Parameters
        ----------
        method:
            HTTP method (GET, POST, etc.).
        path:
            Either an absolute URL or a path relative to the configured base_url.
        params:
            Optional query string parameters.
        headers:
            Extra headers, e.g. `Prefer` directives. Authorization and Accept
            are always set by the client.
        """
        token = await self.get_access_token()

        if path.startswith("http://") or path.startswith("https://"):
            url = path
        else:
            url = f"{self._base_url}/{path.lstrip('/')}"

        request_headers = dict(headers or {})
        request_headers["Authorization"] = f"Bearer {token}"
        request_headers["Accept"] = "application/json"

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=request_headers,
                    params=params,
                )
        except httpx.HTTPError as exc:
            raise GraphClientError(f"Graph {method.upper()} {url} failed: {exc}") from exc

        return resp

    async def get_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Issue a GET request to a Graph endpoint and return the JSON payload.

        Raises GraphClientError on non-2xx responses.
        """
        resp = await self._request("GET", path, params=params, headers=headers)
        if resp.status_code // 100 != 2:
            raise GraphClientError(
                f"Graph GET failed (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()


_graph_client_instance: Optional[GraphClient] = None


def get_graph_client() -> GraphClient:
    """
    Lazily construct a GraphClient instance using application settings.
    """
    global _graph_client_instance
    if _graph_client_instance is None:
        settings = get_settings()
        if not settings.GRAPH_TENANT_ID or not settings.GRAPH_CLIENT_ID or not settings.GRAPH_CLIENT_SECRET:
            raise GraphClientError(
                "GRAPH_TENANT_ID, GRAPH_CLIENT_ID and GRAPH_CLIENT_SECRET must be "
                "configured in settings to use the shared Graph client."
            )
        _graph_client_instance = GraphClient(
            tenant_id=settings.GRAPH_TENANT_ID,
            client_id=settings.GRAPH_CLIENT_ID,
            client_secret=settings.GRAPH_CLIENT_SECRET,
            base_url=str(settings.GRAPH_BASE_URL or "https://graph.microsoft.com"),
            timeout_seconds=settings.GRAPH_TIMEOUT_SECONDS,
        )
    return _graph_client_instance
