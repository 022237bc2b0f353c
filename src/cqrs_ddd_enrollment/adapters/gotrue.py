"""
GoTrue identity provider adapter.

Talks to a GoTrue-compatible auth REST API (the one hosted Supabase
projects expose under /auth/v1) with httpx, and maps its responses
into tagged ProviderResult values.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Any, Dict

import httpx

from cqrs_ddd_enrollment.domain.errors import ProviderError
from cqrs_ddd_enrollment.domain.value_objects import CodeTypeTag, VerifiedSession
from cqrs_ddd_enrollment.ports.identity_provider import (
    AccountStatus,
    IdentityProviderPort,
    ProviderErrorKind,
    ProviderResult,
)

logger = logging.getLogger("cqrs_ddd_enrollment.adapters.gotrue")


@dataclass
class GoTrueConfig:
    """Configuration for the GoTrue adapter."""

    url: str  # e.g., "https://abcd.supabase.co"
    anon_key: str
    site_url: str = ""  # prefix for relative redirect targets
    auth_path: str = "/auth/v1"
    timeout: float = 10.0
    create_user: bool = True

    @property
    def base_url(self) -> str:
        return f"{self.url.rstrip('/')}{self.auth_path}"


def classify_error(status_code: int, body: Dict[str, Any]) -> ProviderErrorKind:
    """Map a GoTrue error response to a provider error kind."""
    code = str(body.get("error_code") or body.get("code") or body.get("error") or "").lower()
    message = str(
        body.get("msg") or body.get("message") or body.get("error_description") or ""
    ).lower()
    text = f"{code} {message}"

    if status_code == 429 or "rate limit" in text or "rate_limit" in text:
        return ProviderErrorKind.RATE_LIMITED
    if "disabled" in text or "not allowed" in text:
        return ProviderErrorKind.DISABLED
    if "expired" in text or "already been used" in text:
        return ProviderErrorKind.EXPIRED
    if "invalid login credentials" in text or "invalid_credentials" in text:
        return ProviderErrorKind.INVALID_CREDENTIALS
    if status_code == 404 or "not found" in text or "not_found" in text:
        return ProviderErrorKind.NOT_FOUND
    if "invalid" in text or status_code in (401, 403):
        return ProviderErrorKind.INVALID
    return ProviderErrorKind.OTHER


class GoTrueIdentityProvider(IdentityProviderPort):
    """
    GoTrue implementation of IdentityProviderPort.

    The adapter holds the session of the browser context it serves,
    which is what get_session() confirms against /user.

    Example usage:
        config = GoTrueConfig(url="https://abcd.supabase.co", anon_key="...")
        provider = GoTrueIdentityProvider(config)

        await provider.send_code_or_link("a@x.com", "/auth/callback")
        result = await provider.verify_code("a@x.com", "12345678", CodeTypeTag.EMAIL)
    """

    def __init__(
        self,
        config: GoTrueConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._current: Optional[VerifiedSession] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "apikey": self.config.anon_key,
                "Authorization": f"Bearer {self.config.anon_key}",
            },
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"GoTrue {method} {path} unreachable: {e}")
            raise ProviderError(
                f"Identity provider unreachable: {e}", details={"path": path}
            ) from e

    def _redirect_url(self, redirect_target: Optional[str]) -> Optional[str]:
        if not redirect_target:
            return None
        if redirect_target.startswith("/") and self.config.site_url:
            return f"{self.config.site_url.rstrip('/')}{redirect_target}"
        return redirect_target

    @staticmethod
    def _body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"msg": response.text}
        return data if isinstance(data, dict) else {}

    def _failed(self, operation: str, response: httpx.Response) -> ProviderResult:
        body = self._body(response)
        kind = classify_error(response.status_code, body)
        message = str(body.get("msg") or body.get("message") or body.get("error_description") or "")
        logger.warning(
            f"GoTrue {operation} failed with {response.status_code}: {kind.value} ({message})"
        )
        return ProviderResult.failed(kind, message)

    def _session_from(self, data: Dict[str, Any]) -> VerifiedSession:
        user = data.get("user") or {}
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = int(time.time()) + int(data["expires_in"])
        session = VerifiedSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            user_id=user.get("id", ""),
            email=user.get("email", ""),
            expires_at=int(expires_at) if expires_at is not None else None,
            user=user,
        )
        self._current = session
        return session

    # ═══════════════════════════════════════════════════════════════
    # PORT
    # ═══════════════════════════════════════════════════════════════

    async def send_code_or_link(
        self, email: str, redirect_target: Optional[str] = None
    ) -> ProviderResult:
        params = {}
        redirect_url = self._redirect_url(redirect_target)
        if redirect_url:
            params["redirect_to"] = redirect_url

        response = await self._request(
            "POST",
            "/otp",
            params=params,
            json={"email": email, "create_user": self.config.create_user},
        )
        if response.is_success:
            logger.info(f"GoTrue sent code and link to {email}")
            return ProviderResult.ok()
        return self._failed("otp", response)

    async def verify_code(
        self, email: str, code: str, type_tag: CodeTypeTag
    ) -> ProviderResult:
        payload: Dict[str, Any] = {"type": type_tag.value}
        if type_tag == CodeTypeTag.MAGICLINK and not code.isdigit():
            payload["token_hash"] = code
        else:
            payload.update({"email": email, "token": code})

        response = await self._request("POST", "/verify", json=payload)
        if response.is_success:
            return ProviderResult.ok(session=self._session_from(self._body(response)))
        return self._failed(f"verify ({type_tag.value})", response)

    async def sign_in_password(self, email: str, password: str) -> ProviderResult:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.is_success:
            return ProviderResult.ok(session=self._session_from(self._body(response)))
        return self._failed("password sign-in", response)

    async def create_account_password(
        self, email: str, password: str
    ) -> ProviderResult:
        response = await self._request(
            "POST", "/signup", json={"email": email, "password": password}
        )

        body = self._body(response)
        if response.is_success:
            # An existing confirmed user comes back with no identities
            user = body.get("user", body)
            if user.get("identities") == []:
                return ProviderResult.ok(account_status=AccountStatus.ALREADY_EXISTS)
            return ProviderResult.ok(account_status=AccountStatus.CREATED)

        text = str(body.get("msg") or body.get("message") or body.get("error_code") or "").lower()
        if "already registered" in text or "user_already_exists" in text:
            return ProviderResult.ok(account_status=AccountStatus.ALREADY_EXISTS)
        return self._failed("signup", response)

    async def get_session(self) -> Optional[VerifiedSession]:
        if self._current is None:
            return None

        response = await self._request(
            "GET",
            "/user",
            headers={"Authorization": f"Bearer {self._current.access_token}"},
        )
        if response.is_success:
            return self._current
        logger.info(f"GoTrue rejected the held session ({response.status_code})")
        return None

    def sign_out(self) -> None:
        self._current = None
