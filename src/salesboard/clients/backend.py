"""
HTTP client for the dashboard's hosted backend.

The backend sits behind a pass-through proxy that speaks PostgREST-style
query strings for tables and a small auth API:
- GET  /{table}?select=a,b&field=gte.X&field=lte.Y&offset=N&limit=M
- POST /auth/v1/login, GET /auth/v1/user, POST /auth/v1/logout
- POST /auth/v1/token?grant_type=refresh_token

Errors come back as ``{"error": "..."}`` (or ``message``) with an HTTP
status. The proxy answers 500 "Server configuration error" when its own
backend URL/key are missing; that is surfaced as ConfigError.
"""

import logging
from datetime import date
from typing import Any

import httpx

from ..config import Settings
from ..core.errors import AuthError, ConfigError, FetchError, ParseError

logger = logging.getLogger(__name__)

PROXY_CONFIG_ERROR = "Server configuration error"


def _format_value(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _quote(value: Any) -> str:
    text = _format_value(value)
    # Reserved characters inside in.(...) lists need double quotes
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def encode_predicates(predicates: dict[str, Any] | None) -> list[tuple[str, str]]:
    """
    Translate predicates into query parameters.

    Supported shapes:
    - ``{field: value}``                 -> field=eq.value
    - ``{field: {"in": [...]}}``          -> field=in.(a,b)
    - ``{field: {"gte": x, "lte": y}}``   -> field=gte.x & field=lte.y
    """
    params: list[tuple[str, str]] = []
    for field_name, value in (predicates or {}).items():
        if isinstance(value, dict):
            if "in" in value:
                members = ",".join(_quote(v) for v in value["in"])
                params.append((field_name, f"in.({members})"))
            for op in ("gte", "lte"):
                if value.get(op) is not None:
                    params.append((field_name, f"{op}.{_format_value(value[op])}"))
        elif isinstance(value, (list, tuple, set, frozenset)):
            members = ",".join(_quote(v) for v in value)
            params.append((field_name, f"in.({members})"))
        elif value is not None:
            params.append((field_name, f"eq.{_format_value(value)}"))
    return params


class BackendClient:
    """
    Async client for the record-fetch and auth interfaces.

    Keeps the session's tokens in memory and sends the access token as a
    Bearer header on every request once logged in.

    Usage:
        async with BackendClient.from_settings(settings) as client:
            await client.login("user@example.com", "secret")
            rows = await client.fetch_records("sales_records", ["sale_date", "brand"])
    """

    def __init__(
        self,
        base_url: str | None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ConfigError("backend API URL is not configured")
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )
        self.access_token: str | None = None
        self.refresh_token: str | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "BackendClient":
        return cls(settings.api_url, timeout=settings.request_timeout, transport=transport)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    # --- transport -------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | dict | None = None,
        json: dict | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise FetchError(f"{method} {path} failed: {exc}") from exc

        if not response.is_success:
            raise self._error_for(response)

        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _error_for(response: httpx.Response) -> FetchError:
        status = response.status_code
        message = f"HTTP error! status: {status}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message") or body.get("msg") or message

        if status in (401, 403):
            return AuthError(message, status)
        if message == PROXY_CONFIG_ERROR:
            return ConfigError(message, status)
        return FetchError(message, status)

    # --- record fetch ----------------------------------------------------

    async def fetch_records(
        self,
        table: str,
        fields: list[str],
        predicates: dict[str, Any] | None = None,
        offset: int = 0,
        limit: int = 50_000,
    ) -> list[dict]:
        """Fetch one page of flat records from ``table``."""
        params = [("select", ",".join(fields))]
        params.extend(encode_predicates(predicates))
        params.extend([("offset", str(offset)), ("limit", str(limit))])

        body = await self._request("GET", table, params=params)

        # Some proxy routes wrap rows as {"data": [...]}
        if isinstance(body, dict):
            if body.get("error"):
                raise FetchError(str(body["error"]))
            body = body.get("data")
        if not isinstance(body, list):
            raise ParseError(f"{table}: expected a list of records")
        return body

    # --- auth ------------------------------------------------------------

    def _store_tokens(self, body: Any) -> None:
        if isinstance(body, dict) and body.get("access_token"):
            self.access_token = body["access_token"]
            self.refresh_token = body.get("refresh_token", self.refresh_token)

    def clear_tokens(self) -> None:
        self.access_token = None
        self.refresh_token = None

    async def login(self, email: str, password: str) -> dict:
        body = await self._request(
            "POST", "auth/v1/login", json={"email": email, "password": password}
        )
        self._store_tokens(body)
        logger.info("Logged in as %s", email)
        return body

    async def get_user(self) -> dict | None:
        """
        Current user, or None when not authenticated.

        An invalid or expired token is not an error here: the token is
        dropped and the caller treats the session as logged out.
        """
        if not self.access_token:
            return None
        try:
            body = await self._request("GET", "auth/v1/user")
        except AuthError as exc:
            logger.info("Stored token rejected (%s); clearing it", exc)
            self.clear_tokens()
            return None
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            return body["user"]
        return body

    async def logout(self) -> None:
        try:
            await self._request("POST", "auth/v1/logout")
        finally:
            self.clear_tokens()

    async def refresh(self) -> dict:
        if not self.refresh_token:
            raise AuthError("no refresh token available", 401)
        body = await self._request(
            "POST",
            "auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self.refresh_token},
        )
        self._store_tokens(body)
        return body
