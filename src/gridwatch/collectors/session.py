"""Luxpower session management.

The web API authenticates with a JSESSIONID cookie obtained from the login
form. The session can expire at any time; callers invalidate the handle on
401/403 and acquire a fresh one.
"""

import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

LOGIN_PATH = "/WManage/api/login"
SESSION_COOKIE = "JSESSIONID"


class LuxpowerError(Exception):
    """Base exception for Luxpower collector errors."""
    pass


class AuthenticationError(LuxpowerError):
    """Login to the Luxpower API failed."""
    pass


class Authenticator(Protocol):
    """Anything that can produce a fresh session token."""

    async def login(self) -> str:
        """Return a new session token or raise AuthenticationError."""
        ...


class LuxpowerAuthenticator:
    """Logs in with account credentials and reads the session cookie."""

    def __init__(self, client: httpx.AsyncClient, username: str, password: str):
        self.client = client
        self.username = username
        self.password = password

    async def login(self) -> str:
        try:
            response = await self.client.post(
                LOGIN_PATH,
                data={"account": self.username, "password": self.password},
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Network error logging in to Luxpower: {e}") from e

        if response.status_code >= 400:
            raise AuthenticationError(f"Luxpower login rejected: HTTP {response.status_code}")

        token = response.cookies.get(SESSION_COOKIE)
        if not token:
            raise AuthenticationError("Login failed. Please check your credentials.")

        logger.info("Successfully logged in")
        return token


class SessionHandle:
    """Replaceable credential shared by concurrent requests.

    Concurrent re-logins are not serialised; whichever finishes last wins.
    """

    def __init__(self, authenticator: Authenticator):
        self.authenticator = authenticator
        self.token: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.token is not None

    async def acquire(self) -> str:
        """Return the current token, logging in first if there is none."""
        token = self.token
        if token is None:
            token = await self.authenticator.login()
            self.token = token
        return token

    def invalidate(self, token: str | None = None) -> None:
        """Drop the token.

        When token is given, only drop it if it is still the current one, so a
        stale failure does not discard a session another request just renewed.
        """
        if token is None or self.token == token:
            self.token = None

    def cookie_header(self, token: str) -> dict[str, str]:
        return {"Cookie": f"{SESSION_COOKIE}={token}"}
