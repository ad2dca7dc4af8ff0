"""Credential providers: a static token or a GitHub App installation token."""

from __future__ import annotations

import datetime as dt
import time
from typing import Optional

import jwt
import requests

from .config import REQUEST_TIMEOUT, USER_AGENT, ReportSettings
from .errors import ConfigError, SchemaMismatch, TransportError

JWT_BACKDATE_SEC = 60
JWT_LIFETIME_SEC = 9 * 60
TOKEN_REFRESH_MARGIN_SEC = 60


class TokenAuth:
    """Personal access token or GITHUB_TOKEN used verbatim."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ConfigError("GitHub token is empty")
        self._token = token

    def token(self) -> str:
        return self._token


class AppAuth:
    """Mint and cache installation tokens for a GitHub App."""

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: str,
        api_url: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.app_id = str(app_id)
        self.private_key = private_key
        self.installation_id = str(installation_id)
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def app_jwt(self) -> str:
        """Return a short-lived RS256 JWT identifying the app."""
        now = int(time.time())
        payload = {
            "iat": now - JWT_BACKDATE_SEC,
            "exp": now + JWT_LIFETIME_SEC,
            "iss": self.app_id,
        }
        try:
            return jwt.encode(payload, self.private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise ConfigError(f"could not sign GitHub App JWT: {exc}") from exc

    def token(self) -> str:
        if self._token and time.time() < self._expires_at - TOKEN_REFRESH_MARGIN_SEC:
            return self._token

        url = f"{self.api_url}/app/installations/{self.installation_id}/access_tokens"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.app_jwt()}",
            "User-Agent": USER_AGENT,
        }
        try:
            resp = self.session.post(url, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise TransportError(f"installation token request failed: {exc}") from exc
        if resp.status_code != 201:
            raise TransportError(
                f"installation token request returned HTTP {resp.status_code}: {(resp.text or '')[:300]}",
                status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise SchemaMismatch(
                f"installation token response is not JSON: {(resp.text or '')[:200]}"
            ) from exc
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise SchemaMismatch("installation token response has no token")
        self._expires_at = _parse_expiry(body.get("expires_at"))
        self._token = token
        print(f"[auth] minted installation token for app {self.app_id}")
        return self._token


def _parse_expiry(value: Optional[str]) -> float:
    """Convert GitHub's ISO-8601 expires_at into epoch seconds (1 hour if absent)."""
    if not value:
        return time.time() + 3600
    try:
        parsed = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise SchemaMismatch(f"installation token expires_at is not a timestamp: {value!r}") from exc
    return parsed.timestamp()


def build_auth(settings: ReportSettings, session: Optional[requests.Session] = None):
    """Choose App credentials when an app id is configured, otherwise a token."""

    if settings.app_id:
        missing = [
            name
            for name, value in (
                ("github_private_key", settings.private_key),
                ("github_installation_id", settings.installation_id),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"github_app_id is set but {', '.join(missing)} is missing")
        return AppAuth(
            settings.app_id,
            settings.private_key,
            settings.installation_id,
            settings.api_url,
            session=session,
        )

    if settings.github_token:
        return TokenAuth(settings.github_token)

    raise ConfigError(
        "no GitHub credentials: set --github-token/GITHUB_TOKEN or the github_app_id, "
        "github_private_key and github_installation_id inputs"
    )


__all__ = ["TokenAuth", "AppAuth", "build_auth"]
