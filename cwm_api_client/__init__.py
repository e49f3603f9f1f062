"""
Python client for interacting with the ConnectWise Manage REST API.

This package provides a `ConnectWiseClient` class that authenticates
against a ConnectWise Manage server and exposes five uniform entry
points (`get`, `search`, `create`, `update`, `delete`) that resource
code uses to talk to the API.  The client takes care of the
authentication headers, condition encoding, forward-only pagination,
error decoding and retrying transient server errors.

Examples
--------

```python
from cwm_api_client import ConnectWiseClient

client = ConnectWiseClient(client_id="YOUR_CLIENT_ID")
client.connect(
    "na.myconnectwise.net",
    "mycompany",
    public_key="YOUR_PUBLIC_KEY",
    private_key="YOUR_PRIVATE_KEY",
)

companies = client.get(
    "company/companies",
    conditions='deletedFlag=false and name like "A%"',
    order_by="name asc",
    all_pages=True,
)

client.create("company/companies/5/notes", {"companyId": 5, "text": "Hello"}, skip=["companyId"])
```

Four ways of authenticating are supported: API member keys, a legacy
integrator login, an integrator login impersonating a member, and a
username/password login that uses a session cookie.  Requests carry
an ``Accept`` header pinning the API version (``2022.1`` unless
configured otherwise).
"""

from .client import ConnectWiseClient
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
from .query import QueryParams, normalize_url
from .session import ApiKeyCredential, CookieCredential, IntegratorCredential, SessionState

__all__ = [
    "ConnectWiseClient",
    "ApiKeyCredential",
    "IntegratorCredential",
    "CookieCredential",
    "SessionState",
    "QueryParams",
    "normalize_url",
    "ConnectWiseError",
    "NotConnectedError",
    "SessionExpiredError",
    "AuthError",
    "StateError",
    "UsageError",
    "ApiError",
    "UnauthorizedError",
    "TransportError",
    "UnsupportedPaginationError",
    "MaxRetriesExceededError",
    "ErrorEnvelope",
]
