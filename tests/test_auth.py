import base64
import copy
from datetime import datetime, timedelta, timezone

import pytest

from cwm_api_client import (
    ApiKeyCredential,
    AuthError,
    ConnectWiseClient,
    NotConnectedError,
    SessionExpiredError,
    UsageError,
)
from cwm_api_client.client import normalize_host
from cwm_api_client.session import parse_expiration

from .helpers import BASE_URL, SYSTEM_INFO, make_response


def _basic(company, user, secret):
    return "Basic " + base64.b64encode(f"{company}+{user}:{secret}".encode()).decode()


class TestApiKeyMode:
    def test_connect_builds_headers_and_probes_once(self, client, http):
        http.queue(make_response(body=SYSTEM_INFO))

        state = client.connect(public_key="pub", private_key="priv")

        assert len(http.calls) == 1
        call = http.calls[0]
        assert call.method == "GET"
        assert call.url == BASE_URL + "system/info"
        assert call.kwargs["headers"]["Authorization"] == _basic("acme", "pub", "priv")
        assert call.kwargs["headers"]["Accept"] == "application/vnd.connectwise.com+json; version=2022.1"
        assert call.kwargs["headers"]["clientId"] == "client-123"
        assert state.host == "na.myconnectwise.net"
        assert state.base_url == BASE_URL
        assert state.auth_mode == "api_key"
        assert state.expires_at is None
        assert client.is_connected

    def test_credential_object_and_api_version(self, http):
        client = ConnectWiseClient(http=http, api_version="2020.1")
        http.queue(make_response(body=SYSTEM_INFO))

        client.connect("https://eu.myconnectwise.net/v4_6_release/", credential=ApiKeyCredential("beta", "p", "k"))

        headers = http.calls[0].kwargs["headers"]
        assert http.calls[0].url.startswith("https://eu.myconnectwise.net/v4_6_release/apis/3.0/")
        assert headers["Authorization"] == _basic("beta", "p", "k")
        assert headers["Accept"].endswith("version=2020.1")

    def test_reconnect_without_force_makes_no_request(self, connected_client, http):
        before = copy.deepcopy(connected_client.session)

        state = connected_client.connect(public_key="other", private_key="keys")

        assert http.calls == []
        assert state == before
        assert connected_client.session == before

    def test_force_reauthenticates(self, connected_client, http):
        http.queue(make_response(body=SYSTEM_INFO))

        connected_client.connect(public_key="new", private_key="keys", force=True)

        assert len(http.calls) == 1
        assert connected_client.session.headers["Authorization"] == _basic("acme", "new", "keys")

    def test_failed_probe_leaves_no_session(self, client, http):
        http.queue(make_response(status=401, body={"code": "Unauthorized", "message": "Denied"}))

        with pytest.raises(AuthError):
            client.connect(public_key="pub", private_key="bad")

        assert client.session is None
        assert not client.is_connected

    def test_empty_probe_is_an_auth_error(self, client, http):
        http.queue(make_response(status=200))

        with pytest.raises(AuthError):
            client.connect(public_key="pub", private_key="priv")

        assert client.session is None

    def test_failed_forced_reconnect_keeps_previous_session(self, connected_client, http):
        before = copy.deepcopy(connected_client.session)
        http.queue(make_response(status=403, body={"code": "Forbidden", "message": "no"}))

        with pytest.raises(AuthError):
            connected_client.connect(public_key="x", private_key="y", force=True)

        assert connected_client.session == before


class TestCredentialSelection:
    @pytest.mark.parametrize("fields", [
        {},
        {"public_key": "pub"},
        {"integrator_user": "int"},
        {"username": "bob"},
    ])
    def test_no_complete_mode_is_rejected(self, client, http, fields):
        with pytest.raises(UsageError):
            client.connect(**fields)
        assert http.calls == []
        assert client.session is None

    @pytest.mark.parametrize("fields", [
        {"public_key": "p", "private_key": "k", "username": "u", "password": "pw"},
        {"public_key": "p", "private_key": "k", "integrator_user": "i", "integrator_pass": "ip"},
        {"integrator_user": "i", "integrator_pass": "ip", "username": "u", "password": "pw"},
    ])
    def test_more_than_one_mode_is_rejected(self, client, http, fields):
        with pytest.raises(UsageError):
            client.connect(**fields)
        assert http.calls == []
        assert client.session is None

    def test_rejection_keeps_existing_session(self, connected_client, http):
        before = copy.deepcopy(connected_client.session)
        with pytest.raises(UsageError):
            connected_client.connect(public_key="p", private_key="k", username="u", password="pw", force=True)
        assert connected_client.session == before
        assert http.calls == []

    def test_credential_and_fields_together_are_rejected(self, client):
        with pytest.raises(UsageError):
            client.connect(credential=ApiKeyCredential("acme", "p", "k"), public_key="p")

    def test_missing_company_is_rejected(self, http):
        with pytest.raises(UsageError):
            ConnectWiseClient(server="na.myconnectwise.net", http=http).connect(
                public_key="p", private_key="k"
            )

    def test_missing_server_is_rejected(self, http):
        with pytest.raises(UsageError):
            ConnectWiseClient(company="acme", http=http).connect(public_key="p", private_key="k")


class TestIntegratorMode:
    def test_integrator_headers_and_warning(self, client, http):
        http.queue(make_response(body=SYSTEM_INFO))

        with pytest.warns(DeprecationWarning):
            state = client.connect(integrator_user="int", integrator_pass="secret")

        headers = http.calls[0].kwargs["headers"]
        assert headers["Authorization"] == _basic("acme", "int", "secret")
        assert headers["x-cw-usertype"] == "integrator"
        assert state.auth_mode == "integrator"

    def test_dont_warn_suppresses_warning(self, client, http, recwarn):
        http.queue(make_response(body=SYSTEM_INFO))
        client.connect(integrator_user="int", integrator_pass="secret", dont_warn=True)
        assert not [w for w in recwarn if issubclass(w.category, DeprecationWarning)]

    def test_impersonation_swaps_in_member_keys(self, client, http):
        http.queue(
            make_response(body={
                "publicKey": "mpub",
                "privateKey": "mpriv",
                "expiration": "2099-01-01T00:00:00Z",
            }),
            make_response(body=SYSTEM_INFO),
        )

        state = client.connect(
            integrator_user="int", integrator_pass="secret", member_id="jdoe", dont_warn=True
        )

        token_call, probe_call = http.calls
        assert token_call.method == "POST"
        assert token_call.url == BASE_URL + "system/members/jdoe/tokens"
        assert token_call.kwargs["json"] == {"memberIdentifier": "jdoe"}
        assert token_call.kwargs["headers"]["Authorization"] == _basic("acme", "int", "secret")
        assert probe_call.kwargs["headers"]["Authorization"] == _basic("acme", "mpub", "mpriv")
        assert "x-cw-usertype" not in probe_call.kwargs["headers"]
        assert state.expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)

    def test_empty_token_response_fails(self, client, http):
        http.queue(make_response(status=200))

        with pytest.raises(AuthError):
            client.connect(integrator_user="int", integrator_pass="secret", member_id="jdoe", dont_warn=True)

        assert len(http.calls) == 1
        assert client.session is None

    def test_unreadable_expiration_is_an_auth_error(self, client, http):
        http.queue(make_response(body={"publicKey": "a", "privateKey": "b", "expiration": "soon"}))

        with pytest.raises(AuthError, match="expiration"):
            client.connect(integrator_user="int", integrator_pass="secret", member_id="jdoe", dont_warn=True)

        assert len(http.calls) == 1
        assert client.session is None

    def test_dotnet_expiration_precision(self, client, http):
        http.queue(
            make_response(body={
                "publicKey": "a",
                "privateKey": "b",
                "expiration": "2099-03-04T05:06:07.1234567Z",
            }),
            make_response(body=SYSTEM_INFO),
        )

        state = client.connect(integrator_user="int", integrator_pass="secret", member_id="jdoe", dont_warn=True)

        assert state.expires_at == datetime(2099, 3, 4, 5, 6, 7, 123456, tzinfo=timezone.utc)

    def test_member_id_requires_integrator(self, client):
        with pytest.raises(UsageError):
            client.connect(public_key="p", private_key="k", member_id="jdoe")


class TestCookieMode:
    def test_cookie_login_stores_jar(self, client, http):
        http.queue(
            make_response(body={"Success": True}, cookies={"cw-app-id": "abc"}),
            make_response(body=SYSTEM_INFO),
        )

        state = client.connect(username="bob", password="pw")

        login, probe = http.calls
        assert login.method == "POST"
        assert login.url == "https://na.myconnectwise.net/v4_6_release/login/login.aspx?response=json"
        assert login.kwargs["data"] == {"CompanyName": "acme", "UserName": "bob", "Password": "pw"}
        assert login.kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert login.kwargs["cookies"] is None
        assert "Authorization" not in probe.kwargs["headers"]
        assert probe.kwargs["cookies"] is state.cookies
        assert state.cookies.get("cw-app-id") == "abc"

    def test_login_without_cookie_fails(self, client, http):
        http.queue(make_response(body={"Success": True}))
        with pytest.raises(AuthError):
            client.connect(username="bob", password="pw")
        assert client.session is None

    def test_rejected_login_fails(self, client, http):
        http.queue(make_response(body={"Success": False, "Message": "Bad password"}, cookies={"x": "1"}))
        with pytest.raises(AuthError, match="Bad password"):
            client.connect(username="bob", password="pw")


class TestSessionLifetime:
    def test_disconnect_is_idempotent(self, connected_client):
        connected_client.disconnect()
        assert connected_client.session is None
        connected_client.disconnect()
        assert connected_client.session is None

    def test_requests_after_disconnect_fail(self, connected_client, http):
        connected_client.disconnect()
        with pytest.raises(NotConnectedError):
            connected_client.get("service/tickets")
        assert http.calls == []

    def test_expired_session_is_not_reused(self, connected_client, http):
        connected_client.session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)

        with pytest.raises(SessionExpiredError):
            connected_client.get("service/tickets")

        assert http.calls == []
        assert connected_client.session is None

    def test_expired_session_reauthenticates_on_connect(self, connected_client, http):
        connected_client.session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        http.queue(make_response(body=SYSTEM_INFO))

        state = connected_client.connect(public_key="pub", private_key="priv")

        assert len(http.calls) == 1
        assert state.expires_at is None

    def test_close_disconnects(self, connected_client, http):
        connected_client.close()
        assert connected_client.session is None
        assert http.closed


@pytest.mark.parametrize("server, host", [
    ("na.myconnectwise.net", "na.myconnectwise.net"),
    ("https://na.myconnectwise.net", "na.myconnectwise.net"),
    ("https://na.myconnectwise.net/v4_6_release/apis/3.0/", "na.myconnectwise.net"),
    ("  cw.example.com/  ", "cw.example.com"),
])
def test_normalize_host(server, host):
    assert normalize_host(server) == host


def test_normalize_host_rejects_empty():
    with pytest.raises(UsageError):
        normalize_host("")


@pytest.mark.parametrize("value, expected", [
    ("2099-01-01T00:00:00Z", datetime(2099, 1, 1, tzinfo=timezone.utc)),
    ("2099-01-01T00:00:00.5Z", datetime(2099, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc)),
    ("2099-01-01T02:00:00+02:00", datetime(2099, 1, 1, tzinfo=timezone.utc)),
    (None, None),
])
def test_parse_expiration(value, expected):
    assert parse_expiration(value) == expected
