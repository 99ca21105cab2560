"""
Session handling: the cookie capability the auth backend persists through,
and session clients for Supabase auth and in-memory testing.
"""

from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Tuple
from urllib.parse import urlencode

from starlette.responses import Response
from supabase import AuthError as SupabaseAuthError
from supabase import Client, ClientOptions, create_client

from promptdesk.errors import AuthError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "promptdesk-session"
# Matches the lifetime @supabase/ssr gives its auth cookies.
SESSION_COOKIE_MAX_AGE = 400 * 24 * 60 * 60
MAX_CHUNK_SIZE = 3180
BASE64_PREFIX = "base64-"


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: str


class CookieStore(Protocol):
    """Narrow cookie capability handed to session clients."""

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str, max_age: Optional[int] = None) -> None:
        ...

    def remove(self, name: str) -> None:
        ...


class RequestCookies:
    """
    Reads cookies from the incoming request and records writes so they can be
    applied to whatever response the route ends up returning.
    """

    def __init__(self, incoming: Mapping[str, str], secure: bool = False):
        self._incoming = dict(incoming)
        self._pending: Dict[str, Optional[Tuple[str, Optional[int]]]] = {}
        self.secure = secure

    def get(self, name: str) -> Optional[str]:
        if name in self._pending:
            pending = self._pending[name]
            return pending[0] if pending else None
        return self._incoming.get(name)

    def set(self, name: str, value: str, max_age: Optional[int] = None) -> None:
        self._pending[name] = (value, max_age)

    def remove(self, name: str) -> None:
        self._pending[name] = None

    def apply(self, response: Response) -> None:
        for name, pending in self._pending.items():
            if pending is None:
                response.delete_cookie(
                    name, path="/", secure=self.secure, httponly=True, samesite="lax"
                )
                continue
            value, max_age = pending
            response.set_cookie(
                name,
                value,
                max_age=max_age,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )


@dataclass
class InMemoryCookieStore:
    """Test double for a browser cookie jar."""

    values: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)

    def set(self, name: str, value: str, max_age: Optional[int] = None) -> None:
        self.values[name] = value

    def remove(self, name: str) -> None:
        self.values.pop(name, None)


class SessionClient(Protocol):
    """Operations the app needs from the auth backend."""

    def get_user(self) -> Optional[SessionUser]:
        ...

    def sign_in_with_oauth(
        self, provider: str, redirect_to: str, consent: bool = True
    ) -> str:
        """Start an OAuth flow and return the provider URL to send the user to."""
        ...

    def exchange_code_for_session(self, code: str) -> SessionUser:
        ...

    def sign_out(self) -> None:
        ...


@dataclass
class InMemoryAuthServer:
    """Stands in for the hosted auth service in development and tests."""

    base_url: str = "https://auth.example.test"
    users: Dict[str, SessionUser] = field(default_factory=dict)
    codes: Dict[str, str] = field(default_factory=dict)
    sessions: Dict[str, SessionUser] = field(default_factory=dict)
    sign_in_requests: List[dict] = field(default_factory=list)

    def authorize(self, email: str) -> str:
        """Simulate the provider approving email; returns the callback code."""
        if email not in self.users:
            self.users[email] = SessionUser(id=secrets.token_hex(16), email=email)
        code = secrets.token_urlsafe(16)
        self.codes[code] = email
        return code


class InMemorySessionClient:
    def __init__(self, server: InMemoryAuthServer, cookies: CookieStore):
        self.server = server
        self.cookies = cookies

    def get_user(self) -> Optional[SessionUser]:
        token = self.cookies.get(SESSION_COOKIE)
        if not token:
            return None
        user = self.server.sessions.get(token)
        if user is None:
            self.cookies.remove(SESSION_COOKIE)
        return user

    def sign_in_with_oauth(
        self, provider: str, redirect_to: str, consent: bool = True
    ) -> str:
        params = {"provider": provider, "redirect_to": redirect_to}
        if consent:
            params["prompt"] = "consent"
        self.server.sign_in_requests.append(params)
        return f"{self.server.base_url}/authorize?{urlencode(params)}"

    def exchange_code_for_session(self, code: str) -> SessionUser:
        email = self.server.codes.pop(code, None)
        if email is None:
            raise AuthError("Invalid or expired authorization code")
        user = self.server.users[email]
        token = secrets.token_urlsafe(32)
        self.server.sessions[token] = user
        self.cookies.set(SESSION_COOKIE, token, max_age=SESSION_COOKIE_MAX_AGE)
        return user

    def sign_out(self) -> None:
        token = self.cookies.get(SESSION_COOKIE)
        if token:
            self.server.sessions.pop(token, None)
        self.cookies.remove(SESSION_COOKIE)


def _encode_cookie_value(value: str) -> str:
    encoded = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")
    return BASE64_PREFIX + encoded.rstrip("=")


def _decode_cookie_value(raw: str) -> str:
    if not raw.startswith(BASE64_PREFIX):
        return raw
    payload = raw[len(BASE64_PREFIX):]
    payload += "=" * (-len(payload) % 4)
    return base64.urlsafe_b64decode(payload.encode("ascii")).decode("utf-8")


class SupabaseCookieStorage:
    """
    Storage adapter the Supabase auth client persists its session (and PKCE
    code verifier) through. Values are base64 encoded and split across
    numbered cookies when they would not fit in one.
    """

    def __init__(self, cookies: CookieStore, max_age: int = SESSION_COOKIE_MAX_AGE):
        self._cookies = cookies
        self.max_age = max_age

    def _chunks(self, key: str) -> List[str]:
        chunks = []
        index = 0
        while True:
            chunk = self._cookies.get(f"{key}.{index}")
            if chunk is None:
                return chunks
            chunks.append(chunk)
            index += 1

    def get_item(self, key: str) -> Optional[str]:
        raw = self._cookies.get(key)
        if raw is None:
            chunks = self._chunks(key)
            if not chunks:
                return None
            raw = "".join(chunks)
        return _decode_cookie_value(raw)

    def set_item(self, key: str, value: str) -> None:
        self.remove_item(key)
        encoded = _encode_cookie_value(value)
        if len(encoded) <= MAX_CHUNK_SIZE:
            self._cookies.set(key, encoded, max_age=self.max_age)
            return
        for index, start in enumerate(range(0, len(encoded), MAX_CHUNK_SIZE)):
            self._cookies.set(
                f"{key}.{index}",
                encoded[start:start + MAX_CHUNK_SIZE],
                max_age=self.max_age,
            )

    def remove_item(self, key: str) -> None:
        if self._cookies.get(key) is not None:
            self._cookies.remove(key)
        for index in range(len(self._chunks(key))):
            self._cookies.remove(f"{key}.{index}")


def create_supabase_client(url: str, anon_key: str, cookies: CookieStore) -> Client:
    """Build a per-request Supabase client whose session lives in cookies."""
    options = ClientOptions(
        storage=SupabaseCookieStorage(cookies),
        flow_type="pkce",
        auto_refresh_token=False,
        persist_session=True,
    )
    return create_client(url, anon_key, options=options)


class SupabaseSessionClient:
    def __init__(self, client: Client):
        self._client = client

    def get_user(self) -> Optional[SessionUser]:
        try:
            response = self._client.auth.get_user()
        except SupabaseAuthError as exc:
            logger.info("Session rejected by auth backend: %s", exc.message)
            return None
        if response is None or response.user is None:
            return None
        return SessionUser(id=response.user.id, email=response.user.email or "")

    def sign_in_with_oauth(
        self, provider: str, redirect_to: str, consent: bool = True
    ) -> str:
        options = {"redirect_to": redirect_to}
        if consent:
            options["query_params"] = {"prompt": "consent"}
        try:
            response = self._client.auth.sign_in_with_oauth(
                {"provider": provider, "options": options}
            )
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        return response.url

    def exchange_code_for_session(self, code: str) -> SessionUser:
        try:
            response = self._client.auth.exchange_code_for_session({"auth_code": code})
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        if response.user is None:
            raise AuthError("No session returned for authorization code")
        return SessionUser(id=response.user.id, email=response.user.email or "")

    def sign_out(self) -> None:
        self._client.auth.sign_out()
