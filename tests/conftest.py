import pytest

from cwm_api_client import ConnectWiseClient

from .helpers import SYSTEM_INFO, FakeHttp, make_response


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def client(http):
    return ConnectWiseClient(
        server="na.myconnectwise.net",
        company="acme",
        client_id="client-123",
        http=http,
    )


@pytest.fixture
def connected_client(client, http):
    http.queue(make_response(body=SYSTEM_INFO))
    client.connect(public_key="pub", private_key="priv")
    http.calls.clear()
    return client


@pytest.fixture
def no_sleep(monkeypatch):
    waits = []
    monkeypatch.setattr("cwm_api_client.client.time.sleep", waits.append)
    return waits
