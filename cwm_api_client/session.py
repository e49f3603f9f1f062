"""
Session state and credential types for the ConnectWise Manage client.

A :class:`SessionState` is produced by
:meth:`cwm_api_client.ConnectWiseClient.connect` and read by every
request the client issues.  Credentials are plain value objects that
are consumed once while connecting and never stored on the session.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from requests.cookies import RequestsCookieJar

from .exceptions import UsageError


@dataclass(frozen=True)
class ApiKeyCredential:
    """Per-member API key pair generated in ConnectWise."""

    company: str
    public_key: str
    private_key: str

    mode = "api_key"


@dataclass(frozen=True)
class IntegratorCredential:
    """Legacy integrator login, optionally impersonating a member."""

    company: str
    username: str
    password: str
    member_id: Optional[str] = None

    mode = "integrator"


@dataclass(frozen=True)
class CookieCredential:
    """Interactive member login that yields a session cookie."""

    company: str
    username: str
    password: str

    mode = "cookie"


Credential = Union[ApiKeyCredential, IntegratorCredential, CookieCredential]


def basic_auth_header(company: str, username: str, password: str) -> str:
    """Return the ``Authorization`` value for a company-scoped login.

    ConnectWise expects ``Basic base64("<company>+<user>:<secret>")``.
    """
    token = f"{company}+{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(token).decode("ascii")


def resolve_credential(
    company: Optional[str],
    *,
    public_key: Optional[str] = None,
    private_key: Optional[str] = None,
    integrator_user: Optional[str] = None,
    integrator_pass: Optional[str] = None,
    member_id: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Credential:
    """Pick the single credential variant whose fields are all supplied.

    Raises
    ------
    UsageError
        If no company is given, or if zero or more than one
        authentication mode is fully supplied.
    """
    if not company:
        raise UsageError("company must be provided")

    candidates = []
    if public_key and private_key:
        candidates.append(ApiKeyCredential(company, public_key, private_key))
    if integrator_user and integrator_pass:
        candidates.append(
            IntegratorCredential(company, integrator_user, integrator_pass, member_id or None)
        )
    if username and password:
        candidates.append(CookieCredential(company, username, password))

    if not candidates:
        raise UsageError(
            "No complete set of credentials supplied; provide public_key/private_key, "
            "integrator_user/integrator_pass or username/password"
        )
    if len(candidates) > 1:
        modes = ", ".join(c.mode for c in candidates)
        raise UsageError(f"Credentials for more than one mode were supplied ({modes})")
    if member_id and not isinstance(candidates[0], IntegratorCredential):
        raise UsageError("member_id can only be used with integrator credentials")
    return candidates[0]


_FRACTION = re.compile(r"(\.\d+)")


def parse_expiration(value: Any) -> Optional[datetime]:
    """Parse the ``expiration`` field of an impersonation token.

    Strings ending in ``Z`` are treated as UTC; naive timestamps are
    assumed to be UTC as well.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        # .NET emits up to seven fractional digits; fromisoformat wants six
        text = _FRACTION.sub(lambda m: "." + (m.group(1)[1:] + "000000")[:6], text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class SessionState:
    """Connection details shared by every request of one client.

    Attributes
    ----------
    host : str
        Bare server host name, without scheme or path.
    base_url : str
        Root of the versioned REST API, ending in a slash.
    headers : dict
        Default headers merged into every request.
    cookies : RequestsCookieJar or None
        Session cookies obtained from a cookie-mode login.
    expires_at : datetime or None
        UTC time after which the session must not be used.
    api_version : str or None
        Version pinned in the ``Accept`` header.
    """

    host: str
    base_url: str
    company: str
    auth_mode: str
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Optional[RequestsCookieJar] = None
    expires_at: Optional[datetime] = None
    api_version: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at
