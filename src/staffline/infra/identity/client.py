"""Async HTTP adapter for a GoTrue-compatible identity provider.

Implements :class:`IdentityProviderPort` over the provider's REST API:

- ``POST /auth/v1/admin/users``: privileged creation, email pre-confirmed
- ``POST /auth/v1/signup``: public self-service signup
- ``GET /auth/v1/admin/users/{id}``: privileged point lookup
- ``GET /auth/v1/admin/users``: privileged listing, scanned for an email
- ``GET /auth/v1/user``: account behind a signup session token

Every failure is raised as :class:`IdentityProviderError`, classified by
:func:`classify_identity_error`. Transport failures are UNKNOWN.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

import httpx

from staffline.domain.provisioning.classification import (
    classify_identity_error,
    parse_retry_after,
)
from staffline.foundation.domain.identifiers import IdentityId
from staffline.foundation.domain.ports.identity_provider import (
    IdentityErrorKind,
    IdentityProviderError,
)
from staffline.foundation.domain.staff_records import Identity, PublicSignup

if TYPE_CHECKING:
    from staffline.infra.identity.settings import IdentityProviderSettings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0


class GoTrueIdentityProvider:
    """Identity provider adapter speaking the GoTrue REST API.

    Supports both shared and owned httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused across calls (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first use.
      Call :meth:`aclose` to release it.

    Args:
        base_url: Provider base URL.
        anon_key: Public API key.
        service_role_key: Privileged API key; empty disables admin calls.
        timeout: HTTP request timeout in seconds.
        list_page_size: Accounts per page when scanning for an email.
        list_max_pages: Pages scanned before giving up.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str = "",
        timeout: float = _DEFAULT_TIMEOUT,
        list_page_size: int = 200,
        list_max_pages: int = 10,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._timeout = timeout
        self._list_page_size = list_page_size
        self._list_max_pages = list_max_pages
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    @classmethod
    def from_settings(cls, settings: IdentityProviderSettings) -> GoTrueIdentityProvider:
        return cls(
            base_url=settings.base_url,
            anon_key=settings.anon_key,
            service_role_key=settings.service_role_key,
            timeout=settings.timeout,
            list_page_size=settings.list_page_size,
            list_max_pages=settings.list_max_pages,
        )

    async def create_privileged(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> Identity:
        body = await self._request(
            "POST",
            "/auth/v1/admin/users",
            headers=self._admin_headers(),
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata,
            },
        )
        identity = _parse_identity(body)
        if identity is None:
            raise IdentityProviderError(
                IdentityErrorKind.UNKNOWN, "Admin create returned no account id"
            )
        return identity

    async def create_public(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> PublicSignup:
        body = await self._request(
            "POST",
            "/auth/v1/signup",
            headers=self._anon_headers(),
            json={"email": email, "password": password, "data": metadata},
        )
        access_token = body.get("access_token")
        if not (isinstance(access_token, str) and access_token):
            access_token = None

        user = body.get("user")
        if isinstance(user, dict):
            session_identity = _parse_identity(user)
            return PublicSignup(
                identity=None,
                session_identity_id=session_identity.id if session_identity else None,
                access_token=access_token,
            )
        return PublicSignup(identity=_parse_identity(body), access_token=access_token)

    async def get_by_id(self, identity_id: UUID) -> Identity | None:
        try:
            body = await self._request(
                "GET",
                f"/auth/v1/admin/users/{identity_id}",
                headers=self._admin_headers(),
            )
        except IdentityProviderError as exc:
            if exc.status_code == 404:
                return None
            raise
        return _parse_identity(body)

    async def list_by_email(self, email: str) -> Identity | None:
        wanted = email.strip().lower()
        for page in range(1, self._list_max_pages + 1):
            body = await self._request(
                "GET",
                "/auth/v1/admin/users",
                headers=self._admin_headers(),
                params={"page": page, "per_page": self._list_page_size},
            )
            users = body.get("users") or []
            for user in users:
                if str(user.get("email", "")).lower() == wanted:
                    return _parse_identity(user)
            if len(users) < self._list_page_size:
                return None
        logger.warning("identity_list_scan_truncated", extra={"pages": self._list_max_pages})
        return None

    async def get_current_user(self, access_token: str) -> Identity | None:
        if not access_token:
            return None
        try:
            body = await self._request(
                "GET",
                "/auth/v1/user",
                headers={**self._anon_headers(), "Authorization": f"Bearer {access_token}"},
            )
        except IdentityProviderError as exc:
            if exc.status_code in (401, 403, 404):
                return None
            raise
        return _parse_identity(body)

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it."""
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None

    def _anon_headers(self) -> dict[str, str]:
        return {"apikey": self._anon_key, "Authorization": f"Bearer {self._anon_key}"}

    def _admin_headers(self) -> dict[str, str]:
        if not self._service_role_key:
            raise IdentityProviderError(
                IdentityErrorKind.PERMISSION_DENIED,
                "Service role key is not configured",
            )
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = self._get_client()
        url = f"{self._base_url}{path}"
        try:
            if method == "POST":
                response = await client.post(url, json=json, headers=headers, timeout=self._timeout)
            else:
                response = await client.get(
                    url, params=params, headers=headers, timeout=self._timeout
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _translate_status_error(exc.response) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "identity_provider_transport_error",
                extra={"path": path, "error_type": type(exc).__name__},
            )
            raise IdentityProviderError(IdentityErrorKind.UNKNOWN, str(exc) or type(exc).__name__) from exc

        if not response.content:
            return {}
        body: dict[str, Any] = response.json()
        return body


def _translate_status_error(response: httpx.Response) -> IdentityProviderError:
    body: dict[str, Any] = {}
    if response.headers.get("content-type", "").startswith("application/json"):
        body = response.json()

    error_code = body.get("error_code")
    if error_code is None and isinstance(body.get("error"), str):
        error_code = body["error"]
    message = str(
        body.get("msg")
        or body.get("message")
        or body.get("error_description")
        or response.reason_phrase
        or ""
    )

    retry_after = _header_seconds(response.headers.get("retry-after"))
    if retry_after is None:
        retry_after = parse_retry_after(message)

    kind = classify_identity_error(response.status_code, error_code, message)
    logger.info(
        "identity_provider_error",
        extra={"status": response.status_code, "error_code": error_code, "kind": str(kind)},
    )
    return IdentityProviderError(
        kind,
        message,
        retry_after=retry_after,
        status_code=response.status_code,
    )


def _header_seconds(value: str | None) -> float | None:
    if value is None or not value.strip().isdigit():
        return None
    return float(value.strip())


def _parse_identity(body: dict[str, Any]) -> Identity | None:
    raw_id = body.get("id")
    if not raw_id:
        return None
    try:
        identity_id = IdentityId.parse(str(raw_id)).value
    except ValueError:
        return None
    return Identity(
        id=identity_id,
        email=str(body.get("email") or ""),
        email_confirmed=bool(body.get("email_confirmed_at") or body.get("confirmed_at")),
    )
