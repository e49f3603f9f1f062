import json
from collections import namedtuple

import requests
from requests.cookies import RequestsCookieJar

Call = namedtuple("Call", ["method", "url", "kwargs"])

SYSTEM_INFO = {"version": "v2022.1.12345", "isCloud": True, "serverTimeZone": "Eastern Standard Time"}
BASE_URL = "https://na.myconnectwise.net/v4_6_release/apis/3.0/"


def make_response(status=200, body=None, text=None, headers=None, cookies=None, url=BASE_URL):
    """Build a ``requests.Response`` without touching the network."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.encoding = "utf-8"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    elif text is not None:
        response._content = text.encode("utf-8")
        response.headers["Content-Type"] = "text/plain"
    else:
        response._content = b""
    response.headers.update(headers or {})
    for name, value in (cookies or {}).items():
        response.cookies.set(name, value)
    return response


class FakeHttp:
    """Stand-in for ``requests.Session`` that replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.cookies = RequestsCookieJar()
        self.closed = False

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append(Call(method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected request {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True
