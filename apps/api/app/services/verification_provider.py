"""Verification provider API client.

OAuth2 client-credentials auth with a cached bearer token, JSON over HTTPS.
Every failure surfaces as VerificationProviderError carrying the HTTP status,
a stable code and the provider's message.

Session creation and restart are not idempotent on the provider side, so they
are sent once; reads and settings calls are retried with backoff.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.db.enums import OnboardingKind
from app.schemas.verification import (
    CorporateSessionRequest,
    CorporateVerificationDetail,
    FormSettings,
    IndividualSessionRequest,
    IndividualVerificationDetail,
    ProviderSessionLink,
)
from app.services.http_service import DEFAULT_RETRY_STATUSES, request_with_retries

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_BUFFER_SECONDS = 60
DEFAULT_TOKEN_TTL_SECONDS = 3600

ONBOARDING_PATHS = {
    OnboardingKind.INDIVIDUAL.value: "/v3/onboarding/indv/request",
    OnboardingKind.CORPORATE.value: "/v3/onboarding/corp/request",
}
FORM_SETTINGS_PATHS = {
    OnboardingKind.INDIVIDUAL.value: "/v3/onboarding/indv/setting",
    OnboardingKind.CORPORATE.value: "/v3/onboarding/corp/setting",
}
WEBHOOK_PREFERENCES_PATH = "/alert/preferences"


class VerificationProviderError(Exception):
    """A provider call failed (transport, auth, HTTP error or undecodable response)."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str = "PROVIDER_ERROR"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


@dataclass
class ProviderCallOutcome:
    """Result of a best-effort provider call."""

    action: str
    ok: bool
    error: str | None = None


@dataclass
class _CachedToken:
    value: str
    expires_at: float


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(data, dict):
        for key in ("message", "error_description", "error", "msg"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or f"HTTP {response.status_code}"


def _onboarding_path(kind: str) -> str:
    try:
        return ONBOARDING_PATHS[OnboardingKind(kind).value]
    except ValueError as exc:
        raise VerificationProviderError(
            f"Unsupported onboarding kind: {kind}", code="UNSUPPORTED_KIND"
        ) from exc


@dataclass
class VerificationProviderClient:
    base_url: str
    oauth_url: str
    client_id: str
    client_secret: str
    timeout: float = 15.0
    max_attempts: int = 3
    retry_base_delay: float = 0.5
    transport: httpx.AsyncBaseTransport | None = None
    _token: _CachedToken | None = field(default=None, init=False, repr=False)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        max_attempts: int,
        **kwargs: Any,
    ) -> httpx.Response:
        async def request_fn() -> httpx.Response:
            return await client.request(method, url, **kwargs)

        try:
            return await request_with_retries(
                request_fn,
                max_attempts=max_attempts,
                base_delay=self.retry_base_delay,
                retry_statuses=DEFAULT_RETRY_STATUSES,
            )
        except httpx.RequestError as exc:
            raise VerificationProviderError(
                f"Verification provider unreachable: {exc}", code="PROVIDER_UNREACHABLE"
            ) from exc

    async def get_access_token(self) -> str:
        """Return a bearer token, fetching a new one shortly before expiry."""
        now = time.monotonic()
        if self._token and self._token.expires_at > now:
            return self._token.value

        if not self.client_id or not self.client_secret:
            raise VerificationProviderError(
                "Verification provider credentials are not configured", code="NOT_CONFIGURED"
            )

        async with self._client() as client:
            response = await self._send(
                client,
                "POST",
                self.oauth_url,
                max_attempts=self.max_attempts,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if response.status_code != 200:
            raise VerificationProviderError(
                f"Failed to obtain access token: {_error_message(response)}",
                status_code=response.status_code,
                code="AUTH_FAILED",
            )
        try:
            data = response.json()
            token = data["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise VerificationProviderError(
                "Token response missing access_token",
                status_code=response.status_code,
                code="AUTH_FAILED",
            ) from exc

        expires_in = data.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS
        ttl = max(int(expires_in) - TOKEN_EXPIRY_BUFFER_SECONDS, 0)
        self._token = _CachedToken(value=token, expires_at=now + ttl)
        logger.info("Verification provider token refreshed (ttl=%ss)", ttl)
        return token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> Any:
        token = await self.get_access_token()
        url = f"{self.base_url.rstrip('/')}{path}"
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        max_attempts = self.max_attempts if retry else 1

        async with self._client() as client:
            response = await self._send(
                client, method, url, max_attempts=max_attempts, json=json, headers=headers
            )

        if response.status_code == 401:
            # Token revoked or rotated provider-side; next call fetches a fresh one.
            self._token = None

        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.warning(
                "Verification provider %s %s failed: %s %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise VerificationProviderError(
                message, status_code=response.status_code, code="HTTP_ERROR"
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise VerificationProviderError(
                "Verification provider returned invalid JSON",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            ) from exc

    @staticmethod
    def _decode(model, data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise VerificationProviderError(
                f"Unexpected {what} response from verification provider",
                code="INVALID_RESPONSE",
            ) from exc

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_individual_session(self, request: IndividualSessionRequest) -> ProviderSessionLink:
        data = await self._request(
            "POST",
            ONBOARDING_PATHS[OnboardingKind.INDIVIDUAL.value],
            json=request.model_dump(by_alias=True, exclude_none=True),
            retry=False,
        )
        return self._decode(ProviderSessionLink, data, "create session")

    async def create_corporate_session(self, request: CorporateSessionRequest) -> ProviderSessionLink:
        data = await self._request(
            "POST",
            ONBOARDING_PATHS[OnboardingKind.CORPORATE.value],
            json=request.model_dump(by_alias=True, exclude_none=True),
            retry=False,
        )
        return self._decode(ProviderSessionLink, data, "create session")

    async def get_session_detail(
        self, request_id: str, kind: str
    ) -> IndividualVerificationDetail | CorporateVerificationDetail:
        data = await self._request("GET", f"{_onboarding_path(kind)}/{request_id}")
        if kind == OnboardingKind.CORPORATE.value:
            return self._decode(CorporateVerificationDetail, data, "session detail")
        return self._decode(IndividualVerificationDetail, data, "session detail")

    async def restart_session(self, request_id: str, kind: str) -> ProviderSessionLink:
        data = await self._request(
            "POST", f"{_onboarding_path(kind)}/{request_id}/restart", retry=False
        )
        return self._decode(ProviderSessionLink, data, "restart session")

    # =========================================================================
    # Configuration
    # =========================================================================

    async def set_webhook_preferences(self, webhook_url: str, enabled: bool = True) -> None:
        await self._request(
            "POST",
            WEBHOOK_PREFERENCES_PATH,
            json={"webhookUrl": webhook_url, "webhookEnabled": enabled},
        )

    async def set_form_settings(self, kind: str, form_settings: FormSettings) -> None:
        try:
            path = FORM_SETTINGS_PATHS[OnboardingKind(kind).value]
        except ValueError as exc:
            raise VerificationProviderError(
                f"Unsupported onboarding kind: {kind}", code="UNSUPPORTED_KIND"
            ) from exc
        await self._request("POST", path, json=form_settings.model_dump(by_alias=True))


_client: VerificationProviderClient | None = None


def get_provider_client() -> VerificationProviderClient:
    """Process-wide client built from settings (shares the token cache)."""
    global _client
    if _client is None:
        _client = VerificationProviderClient(
            base_url=settings.VERIFICATION_API_BASE_URL,
            oauth_url=settings.VERIFICATION_OAUTH_URL,
            client_id=settings.VERIFICATION_CLIENT_ID,
            client_secret=settings.VERIFICATION_CLIENT_SECRET,
            timeout=settings.VERIFICATION_TIMEOUT_SECONDS,
            max_attempts=settings.VERIFICATION_MAX_ATTEMPTS,
        )
    return _client
