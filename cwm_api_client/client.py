"""
Client implementation for the ConnectWise Manage REST API.

This module defines the :class:`ConnectWiseClient` class which
authenticates against a ConnectWise Manage server (cloud or on
premises) and performs HTTP requests against its versioned REST API.
All resource-specific code talks to the server through five uniform
entry points: :meth:`~ConnectWiseClient.get`,
:meth:`~ConnectWiseClient.search`, :meth:`~ConnectWiseClient.create`,
:meth:`~ConnectWiseClient.update` and :meth:`~ConnectWiseClient.delete`.

Usage
-----

.. code-block:: python

    from cwm_api_client import ConnectWiseClient

    client = ConnectWiseClient(client_id="00000000-0000-0000-0000-000000000000")
    client.connect(
        "na.myconnectwise.net",
        "mycompany",
        public_key="pubkey",
        private_key="privkey",
    )

    # Every open ticket on board 1, all pages
    tickets = client.get(
        "service/tickets",
        conditions='closedFlag=false and board/id=1',
        order_by="id desc",
        all_pages=True,
    )

    client.update("service/tickets/42", field_path="status/id", value=7)

The session lives on the client instance.  Credentials are only used
while connecting; when an impersonation token expires, call
:meth:`~ConnectWiseClient.connect` again.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import warnings
from datetime import datetime
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Collection, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests
from requests.cookies import RequestsCookieJar
from requests.structures import CaseInsensitiveDict

from .exceptions import (
    ApiError,
    AuthError,
    ConnectWiseError,
    ErrorEnvelope,
    MaxRetriesExceededError,
    NotConnectedError,
    SessionExpiredError,
    StateError,
    TransportError,
    UnauthorizedError,
    UnsupportedPaginationError,
    UsageError,
)
from .query import (
    FORWARD_ONLY_PAGE_SIZE,
    OrderBy,
    QueryParams,
    build_search_body,
    build_url,
    condition_date,
    parse_next_link,
)
from .session import (
    ApiKeyCredential,
    CookieCredential,
    Credential,
    IntegratorCredential,
    SessionState,
    basic_auth_header,
    parse_expiration,
    resolve_credential,
)

logger = logging.getLogger(__name__)


def normalize_host(server: str) -> str:
    """Strip scheme, path and surrounding whitespace from a server address."""
    text = (server or "").strip()
    parsed = urlparse(text if "://" in text else f"//{text}")
    host = parsed.netloc.strip("/")
    if not host:
        raise UsageError(f"Could not determine a server host from {server!r}")
    return host


def decode_error(response: requests.Response) -> ErrorEnvelope:
    """Build an :class:`ErrorEnvelope` from a failed response."""
    envelope = ErrorEnvelope(http_status=response.status_code)
    try:
        body = response.json()
    except ValueError:
        envelope.raw = response.text or None
        return envelope

    if not isinstance(body, dict):
        envelope.raw = response.text
        return envelope
    envelope.code = body.get("code")
    envelope.message = body.get("message")
    for item in body.get("errors") or []:
        if not isinstance(item, dict):
            envelope.field_errors.append(str(item))
            continue
        message = item.get("message") or item.get("code") or ""
        name = item.get("field")
        envelope.field_errors.append(f"{name}: {message}" if name else message)
    return envelope


class ConnectWiseClient:
    """A client for the ConnectWise Manage REST API.

    Parameters
    ----------
    server : str, optional
        Default server host used by :meth:`connect`, such as
        ``"na.myconnectwise.net"``.  A scheme or path is ignored.
    company : str, optional
        Default company identifier used by :meth:`connect`.
    client_id : str, optional
        The integration's client id from the ConnectWise developer
        portal.  Sent in the ``clientId`` header on every request.
    api_version : str, optional
        API version pinned in the ``Accept`` header.  Defaults to
        :attr:`DEFAULT_API_VERSION`.
    codebase : str, optional
        Release path segment of the server, defaults to
        ``"v4_6_release"``.
    max_retries : int, optional
        Number of retries for transient server errors.  Defaults to 5.
    timeout : float, optional
        Timeout in seconds for each HTTP request.
    scheme : str, optional
        URL scheme used to reach the server.  Defaults to ``"https"``.
    local_timezone : str, optional
        Zone name used to interpret naive datetimes passed to
        :meth:`condition_date`.  Defaults to ``"UTC"``.
    http : requests.Session, optional
        Session used to send requests.  A new one is created when not
        supplied.

    Notes
    -----
    The client is synchronous and issues one request at a time.  Calls
    only read the session state, so several threads may share a
    connected client, but :meth:`connect` and :meth:`disconnect` must
    not run while other requests are in flight; the client does not
    lock around them.
    """

    DEFAULT_API_VERSION = "2022.1"
    DEFAULT_CODEBASE = "v4_6_release"
    API_PATH = "apis/3.0"
    DEFAULT_MAX_RETRIES = 5
    DEFAULT_TIMEOUT = 60.0
    RETRY_STATUS_CODES = frozenset({500, 502, 503, 504})
    MEDIA_TYPE = "application/vnd.connectwise.com+json"
    SYSTEM_INFO_PATH = "system/info"

    def __init__(
        self,
        *,
        server: Optional[str] = None,
        company: Optional[str] = None,
        client_id: Optional[str] = None,
        api_version: Optional[str] = None,
        codebase: Optional[str] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        scheme: str = "https",
        local_timezone: str = "UTC",
        http: Optional[requests.Session] = None,
    ) -> None:
        if max_retries is not None and max_retries < 0:
            raise ValueError(f"max_retries must be a non-negative integer, got {max_retries!r}")

        self.server = server
        self.company = company
        self.client_id = client_id
        self.api_version = api_version or self.DEFAULT_API_VERSION
        self.codebase = (codebase or self.DEFAULT_CODEBASE).strip("/")
        self.max_retries = self.DEFAULT_MAX_RETRIES if max_retries is None else max_retries
        self.timeout = self.DEFAULT_TIMEOUT if timeout is None else timeout
        self.scheme = scheme
        self.local_timezone = local_timezone
        self._http = http if http is not None else requests.Session()
        # session cookies live on SessionState only
        self._http.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self._state: Optional[SessionState] = None

    def __enter__(self) -> "ConnectWiseClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Drop the session and close the underlying HTTP session."""
        self.disconnect()
        self._http.close()

    @property
    def session(self) -> Optional[SessionState]:
        """The current session state, or ``None`` when disconnected."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Whether a session exists and has not expired."""
        return self._state is not None and not self._state.is_expired()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def connect(
        self,
        server: Optional[str] = None,
        company: Optional[str] = None,
        *,
        credential: Optional[Credential] = None,
        public_key: Optional[str] = None,
        private_key: Optional[str] = None,
        integrator_user: Optional[str] = None,
        integrator_pass: Optional[str] = None,
        member_id: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: Optional[str] = None,
        api_version: Optional[str] = None,
        force: bool = False,
        dont_warn: bool = False,
    ) -> SessionState:
        """Authenticate and store a new session on this client.

        Exactly one authentication mode must be supplied, either as a
        ready-made ``credential`` or through the keyword fields:

        * ``public_key`` and ``private_key`` for an API member key;
        * ``integrator_user`` and ``integrator_pass`` for a legacy
          integrator login, optionally with ``member_id`` to act as
          that member;
        * ``username`` and ``password`` for a cookie-based login.

        If the client already holds a session that has not expired and
        ``force`` is false, that session is returned without contacting
        the server.

        After the headers are built, one ``system/info`` request
        validates the session.  Any failure leaves the previous session
        state exactly as it was.

        Raises
        ------
        UsageError
            If the server, company or credential fields are invalid.
        AuthError
            If the server rejects the credentials or the validation
            request fails.
        """
        loose = (public_key, private_key, integrator_user, integrator_pass,
                 member_id, username, password)
        if credential is not None:
            if any(loose):
                raise UsageError("Pass either credential or individual credential fields, not both")
        else:
            credential = resolve_credential(
                company or self.company,
                public_key=public_key,
                private_key=private_key,
                integrator_user=integrator_user,
                integrator_pass=integrator_pass,
                member_id=member_id,
                username=username,
                password=password,
            )
        current_host = self._state.host if self._state is not None else ""
        host = normalize_host(server or self.server or current_host)

        if self._state is not None and not force:
            if not self._state.is_expired():
                logger.debug("Reusing existing ConnectWise session for %s", self._state.host)
                return self._state
            logger.info("ConnectWise session for %s has expired, re-authenticating",
                        self._state.host)

        state = self._authenticate(
            host,
            credential,
            client_id=client_id or self.client_id,
            api_version=api_version or self.api_version,
            dont_warn=dont_warn,
        )
        self._state = state
        logger.info("Connected to ConnectWise server %s as %s (%s)",
                    host, credential.company, credential.mode)
        return state

    def disconnect(self) -> None:
        """Forget the current session.  Does nothing when not connected."""
        self._http.cookies.clear()
        if self._state is None:
            logger.debug("disconnect() called without an active session")
            return
        host = self._state.host
        self._state = None
        if self._state is not None:
            raise StateError("Session state could not be cleared")
        logger.info("Disconnected from ConnectWise server %s", host)

    def _authenticate(
        self,
        host: str,
        credential: Credential,
        *,
        client_id: Optional[str],
        api_version: str,
        dont_warn: bool,
    ) -> SessionState:
        """Build and validate a session without touching ``self._state``."""
        headers = {
            "Accept": f"{self.MEDIA_TYPE}; version={api_version}",
            "Content-Type": "application/json",
        }
        if client_id:
            headers["clientId"] = client_id
        state = SessionState(
            host=host,
            base_url=f"{self.scheme}://{host}/{self.codebase}/{self.API_PATH}/",
            company=credential.company,
            auth_mode=credential.mode,
            headers=headers,
            api_version=api_version,
        )

        try:
            if isinstance(credential, ApiKeyCredential):
                headers["Authorization"] = basic_auth_header(
                    credential.company, credential.public_key, credential.private_key
                )
            elif isinstance(credential, IntegratorCredential):
                if not dont_warn:
                    message = ("Integrator logins are deprecated by ConnectWise; "
                               "switch to API member keys")
                    logger.warning(message)
                    warnings.warn(message, DeprecationWarning, stacklevel=3)
                headers["Authorization"] = basic_auth_header(
                    credential.company, credential.username, credential.password
                )
                headers["x-cw-usertype"] = "integrator"
                if credential.member_id:
                    self._impersonate(state, credential)
            elif isinstance(credential, CookieCredential):
                self._cookie_login(state, credential)
            else:
                raise UsageError(f"Unsupported credential type {type(credential).__name__}")

            info = self._decode(self._send(state, "GET", self.SYSTEM_INFO_PATH))
        except (AuthError, UsageError):
            raise
        except ConnectWiseError as exc:
            raise AuthError(f"Unable to authenticate with {host}: {exc}") from exc

        if not info:
            raise AuthError(f"Unable to authenticate with {host}: system info request returned nothing")
        logger.debug("Server %s reports version %s", host,
                     info.get("version") if isinstance(info, dict) else None)
        return state

    def _impersonate(self, state: SessionState, credential: IntegratorCredential) -> None:
        """Exchange integrator credentials for a member's temporary key pair."""
        response = self._send(
            state,
            "POST",
            f"system/members/{credential.member_id}/tokens",
            json={"memberIdentifier": credential.member_id},
        )
        token = self._decode(response)
        if not token:
            raise AuthError(f"Failed to create an impersonation token for {credential.member_id}")
        try:
            public_key = token["publicKey"]
            private_key = token["privateKey"]
        except (KeyError, TypeError) as exc:
            raise AuthError("Impersonation token response is missing its key pair") from exc

        state.headers["Authorization"] = basic_auth_header(credential.company, public_key, private_key)
        state.headers.pop("x-cw-usertype", None)
        try:
            state.expires_at = parse_expiration(token.get("expiration"))
        except (TypeError, ValueError) as exc:
            raise AuthError(
                f"Impersonation token has an unreadable expiration {token.get('expiration')!r}"
            ) from exc
        logger.debug("Impersonating member %s until %s", credential.member_id, state.expires_at)

    def _cookie_login(self, state: SessionState, credential: CookieCredential) -> None:
        """Log in with a member's username and password and keep the cookies."""
        url = f"{self.scheme}://{state.host}/{self.codebase}/login/login.aspx?response=json"
        response = self._send(
            state,
            "POST",
            url,
            data={
                "CompanyName": credential.company,
                "UserName": credential.username,
                "Password": credential.password,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            establish_session=True,
        )
        body = self._decode(response)
        if isinstance(body, dict) and body.get("Success") is False:
            raise AuthError(f"Login rejected for {credential.username}: {body.get('Message')}")
        if not response.cookies:
            raise AuthError(f"Login for {credential.username} did not return a session cookie")
        jar = RequestsCookieJar()
        jar.update(response.cookies)
        state.cookies = jar

    # ------------------------------------------------------------------
    # HTTP request helpers
    # ------------------------------------------------------------------
    def _require_session(self) -> SessionState:
        state = self._state
        if state is None:
            raise NotConnectedError("Not connected to a ConnectWise server; call connect() first")
        if state.is_expired():
            self._state = None
            raise SessionExpiredError(
                f"The ConnectWise session for {state.host} expired at "
                f"{state.expires_at.isoformat()}; call connect() again"
            )
        return state

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        data: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        establish_session: bool = False,
    ) -> requests.Response:
        """Perform one HTTP request against the ConnectWise API.

        Parameters
        ----------
        method : str
            The HTTP verb, such as ``"GET"`` or ``"PATCH"``.
        path : str
            Endpoint path relative to the API root.  Absolute URLs, such
            as next-page links, are used as-is.
        json : object, optional
            A JSON-serialisable request body.
        data : dict, optional
            Form fields, for endpoints that do not accept JSON.
        headers : dict, optional
            Extra headers.  A header given here replaces the session
            default of the same name.
        timeout : float, optional
            Overrides the client's timeout for this call.
        max_retries : int, optional
            Overrides the client's retry budget for this call.
        establish_session : bool, optional
            Do not send stored session cookies with this request.

        Returns
        -------
        requests.Response
            The successful response.

        Raises
        ------
        NotConnectedError
            If :meth:`connect` has not been called, or the session expired.
        UnauthorizedError
            If the server answers with the ``Unauthorized`` error code.
        MaxRetriesExceededError
            If a transient server error outlasts the retry budget.
        ApiError
            For any other error response or connection failure.
        """
        state = self._require_session()
        return self._send(
            state,
            method,
            path,
            json=json,
            data=data,
            headers=headers,
            timeout=timeout,
            max_retries=max_retries,
            establish_session=establish_session,
        )

    def _send(
        self,
        state: SessionState,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        data: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        establish_session: bool = False,
    ) -> requests.Response:
        url = build_url(state.base_url, path)
        method = method.upper()
        req_headers = CaseInsensitiveDict(state.headers)
        if headers:
            req_headers.update(headers)
        if establish_session:
            self._http.cookies.clear()
            cookies = None
        else:
            cookies = state.cookies
        budget = self.max_retries if max_retries is None else max_retries
        timeout = self.timeout if timeout is None else timeout

        retry_count = 0
        while True:
            logger.debug("%s %s", method, url)
            try:
                response = self._http.request(
                    method,
                    url,
                    headers=dict(req_headers.items()),
                    json=json,
                    data=data,
                    cookies=cookies,
                    timeout=timeout,
                )
            except requests.RequestException as exc:
                raise TransportError(
                    f"Failed to connect to {url}: {exc}",
                    ErrorEnvelope(http_status=None, message=str(exc)),
                ) from exc

            status = response.status_code
            if status in self.RETRY_STATUS_CODES:
                if retry_count >= budget:
                    logger.error("%s %s failed after %d attempts with HTTP %d",
                                 method, url, retry_count + 1, status)
                    raise MaxRetriesExceededError(
                        f"{method} {url} still failing with HTTP {status} "
                        f"after {retry_count} retries",
                        last_status=status,
                        attempts=retry_count + 1,
                        envelope=decode_error(response),
                    )
                retry_count += 1
                wait_ms = 2 ** retry_count
                logger.warning("HTTP %d from %s %s (retry %d/%d), waiting %d ms",
                               status, method, url, retry_count, budget, wait_ms)
                time.sleep(wait_ms / 1000.0)
                continue

            if status >= 400:
                raise self._error_for(response, method, url)
            return response

    def _error_for(self, response: requests.Response, method: str, url: str) -> ApiError:
        envelope = decode_error(response)
        if envelope.code == "Unauthorized" or response.status_code == 401:
            return UnauthorizedError(
                f"{method} {url} was not authorized ({envelope.describe()}). "
                "Check the member's security role, or call connect(force=True) "
                "with valid credentials",
                envelope,
            )
        return ApiError(f"{envelope.describe()} for {method} {url}", envelope)

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        """Return the parsed JSON body, or ``None`` for empty or non-JSON bodies."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("Ignoring non-JSON response body from %s", response.url)
            return None

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------
    def _fetch_all(
        self,
        method: str,
        path: str,
        params: QueryParams,
        *,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> List[Any]:
        """Follow ``rel="next"`` links until the collection is exhausted.

        A failure on any page propagates and the pages collected so far
        are discarded.
        """
        state = self._require_session()
        params = dataclasses.replace(params, page=None, page_size=FORWARD_ONLY_PAGE_SIZE)
        req_headers = dict(headers or {})
        req_headers["pagination-type"] = "forward-only"

        url = build_url(state.base_url, path, params)
        response = self.request(method, url, json=json, headers=req_headers, timeout=timeout)
        if "Link" not in response.headers:
            raise UnsupportedPaginationError(f"{method} {path}")

        results: List[Any] = []
        pages = 0
        while True:
            pages += 1
            body = self._decode(response)
            if isinstance(body, list):
                results.extend(body)
            elif body is not None:
                results.append(body)

            next_url = parse_next_link(response.headers.get("Link"))
            if not next_url:
                break
            response = self.request(method, next_url, json=json, headers=req_headers, timeout=timeout)

        logger.debug("Fetched %d items from %s in %d pages", len(results), path, pages)
        return results

    # ------------------------------------------------------------------
    # Public convenience methods
    # ------------------------------------------------------------------
    def get(
        self,
        path: str,
        *,
        conditions: Optional[str] = None,
        child_conditions: Optional[str] = None,
        custom_field_conditions: Optional[str] = None,
        order_by: Optional[OrderBy] = None,
        fields: Optional[Any] = None,
        columns: Optional[Any] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all_pages: bool = False,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Perform a GET request, optionally filtered and paged.

        With ``all_pages=True`` every page is fetched using forward-only
        pagination and a single list is returned; ``page`` and
        ``page_size`` are ignored in that case.

        Returns
        -------
        Any
            The decoded JSON body, or ``None`` when the body is empty.

        Raises
        ------
        UsageError
            For invalid ordering or paging parameters.
        UnsupportedPaginationError
            If ``all_pages`` is requested on an endpoint without
            forward-only pagination.
        """
        params = QueryParams(
            conditions=conditions,
            child_conditions=child_conditions,
            custom_field_conditions=custom_field_conditions,
            order_by=order_by,
            fields=fields,
            columns=columns,
            page=page,
            page_size=page_size,
        ).validate()
        if all_pages:
            return self._fetch_all("GET", path, params, headers=headers, timeout=timeout)

        state = self._require_session()
        url = build_url(state.base_url, path, params)
        return self._decode(self.request("GET", url, headers=headers, timeout=timeout))

    def search(
        self,
        path: str,
        *,
        conditions: Optional[str] = None,
        child_conditions: Optional[str] = None,
        custom_field_conditions: Optional[str] = None,
        order_by: Optional[OrderBy] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all_pages: bool = False,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Query a POST-based search endpoint such as ``company/companies/search``.

        The filters are sent as a JSON body; paging goes on the URL.
        Otherwise this behaves like :meth:`get`.
        """
        params = QueryParams(
            conditions=conditions,
            child_conditions=child_conditions,
            custom_field_conditions=custom_field_conditions,
            order_by=order_by,
            page=page,
            page_size=page_size,
        ).validate()
        body = build_search_body(params)
        if all_pages:
            return self._fetch_all("POST", path, QueryParams(), json=body,
                                   headers=headers, timeout=timeout)

        state = self._require_session()
        url = build_url(state.base_url, path, params.paging_only())
        return self._decode(self.request("POST", url, json=body, headers=headers, timeout=timeout))

    def create(
        self,
        path: str,
        body: Any,
        *,
        skip: Collection[str] = (),
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Perform a POST request creating a new record.

        ``body`` is a mapping or a dataclass instance.  Keys named in
        ``skip`` are left out of the request body; use it for values
        that belong in the URL, such as a parent record id.
        """
        if dataclasses.is_dataclass(body) and not isinstance(body, type):
            body = dataclasses.asdict(body)
        if not isinstance(body, Mapping):
            raise UsageError(f"body must be a mapping or dataclass, got {type(body).__name__}")
        skipped = set(skip)
        payload = {key: value for key, value in body.items() if key not in skipped}
        return self._decode(self.request("POST", path, json=payload, headers=headers, timeout=timeout))

    def update(
        self,
        path: str,
        *,
        field_path: str,
        value: Any = None,
        operation: str = "replace",
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Perform a PATCH request changing a single field.

        The body is always a one-element patch document, e.g.
        ``[{"op": "replace", "path": "status/id", "value": 7}]``.
        ConnectWise applies one operation per request, so changing
        several fields takes several calls.
        """
        if operation not in ("add", "replace", "remove"):
            raise UsageError(f"operation must be 'add', 'replace' or 'remove', got {operation!r}")
        if not field_path:
            raise UsageError("field_path must not be empty")
        payload = [{"op": operation, "path": field_path, "value": value}]
        return self._decode(self.request("PATCH", path, json=payload, headers=headers, timeout=timeout))

    def delete(
        self,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Perform a DELETE request.  Returns ``None`` for the usual empty body."""
        return self._decode(self.request("DELETE", path, headers=headers, timeout=timeout))

    def count(self, path: str, *, conditions: Optional[str] = None, **kwargs: Any) -> int:
        """Return the number of records in a collection matching ``conditions``."""
        body = self.get(f"{path.rstrip('/')}/count", conditions=conditions, **kwargs)
        if not isinstance(body, dict):
            return 0
        return int(body.get("count", 0))

    def system_info(self) -> Dict[str, Any]:
        """Return the server's ``system/info`` document."""
        return self.get(self.SYSTEM_INFO_PATH) or {}

    # ------------------------------------------------------------------
    # Date helpers
    # ------------------------------------------------------------------
    def _get_user_zone(self) -> "ZoneInfo":
        """Return the configured local time zone as a ``ZoneInfo``."""
        from zoneinfo import ZoneInfo

        zone = getattr(self, "_user_zone", None)
        if zone is None or zone.key != self.local_timezone:
            zone = ZoneInfo(self.local_timezone)
            self._user_zone = zone
        return zone

    def condition_date(self, dt: datetime) -> str:
        """Format ``dt`` for use in a condition, e.g. ``lastUpdated>[2024-05-01T00:00:00Z]``.

        Naive datetimes are taken to be in the client's ``local_timezone``.
        """
        return condition_date(dt, self._get_user_zone())
