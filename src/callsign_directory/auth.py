"""callsign_directory.auth

The upload page only needs two things from the identity provider: who the
caller is, and where to send them to log in.  Sign-in itself happens
upstream (an authenticating reverse proxy sets a trusted header).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

from fastapi import Request


class Authenticator(Protocol):
    def current_user(self, request: Request) -> str | None:
        """Return the authenticated user's name, or None."""
        ...

    def login_url(self, return_to: str) -> str:
        """Return the URL that signs a caller in and sends them back to return_to."""
        ...


@dataclass
class HeaderAuthenticator:
    """Trust a user header set by the authenticating proxy in front of the app."""

    header: str = "X-Authenticated-User"
    login_path: str = "/login"

    def current_user(self, request: Request) -> str | None:
        user = (request.headers.get(self.header) or "").strip()
        return user or None

    def login_url(self, return_to: str) -> str:
        sep = "&" if "?" in self.login_path else "?"
        return f"{self.login_path}{sep}{urlencode({'continue': return_to})}"
